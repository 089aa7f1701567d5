"""Resolve step references into runnable transform units."""

from __future__ import annotations

import hashlib
import logging
import sys
import threading
from importlib import import_module
from importlib.util import module_from_spec, spec_from_file_location
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Optional, Tuple

from ..constants import DEFAULT_STEP_ATTRIBUTES
from ..errors import LoadError
from .base import LoadedStep, as_callable

logger = logging.getLogger(__name__)

# (kind, location, attribute)
_CacheKey = Tuple[str, str, Optional[str]]


def _split_reference(step_ref: str) -> tuple[str, Optional[str]]:
    """Split ``target:attribute``; a trailing non-identifier is part of the target."""
    target, sep, attr = step_ref.rpartition(":")
    if sep and target and attr.isidentifier():
        return target, attr
    return step_ref, None


def _looks_like_path(target: str) -> bool:
    return target.endswith(".py") or "/" in target or "\\" in target or target.startswith(".")


def _module_name_for_file(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    return f"_stepflow_step_{path.stem}_{digest}"


class StepLoader:
    """Turns step references into :class:`LoadedStep` objects.

    Supported references:

    * a name passed to :meth:`register`;
    * ``package.module`` or ``package.module:attribute``;
    * a Python file path, optionally suffixed ``:attribute``. Relative paths
      are resolved against ``base_path``.

    Resolved units are cached by their resolved identity, so ``./a.py`` and
    ``a.py`` under the same base path share one import.

    Resolution is serialized by a lock so it may run in worker threads.
    """

    def __init__(
        self,
        base_path: Optional[Path | str] = None,
        run_sync_in_thread: bool = True,
    ) -> None:
        self.base_path = Path(base_path).expanduser() if base_path else None
        self.run_sync_in_thread = run_sync_in_thread
        self._registered: Dict[str, Any] = {}
        self._cache: Dict[_CacheKey, LoadedStep] = {}
        self._lock = threading.RLock()

    def register(self, name: str, unit: Any) -> None:
        """Make ``unit`` resolvable as ``name``.

        ``unit`` may be a callable, an object with ``apply`` or a class.
        """
        if as_callable(unit) is None:
            raise LoadError(name, f"{unit!r} does not provide apply(data)")
        with self._lock:
            self._registered[name] = unit
            self._cache.pop(("registered", name, None), None)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    @property
    def cached_keys(self) -> list[_CacheKey]:
        with self._lock:
            return list(self._cache)

    def resolve(self, step_ref: str) -> LoadedStep:
        """Return the transform unit behind ``step_ref``.

        Raises:
            LoadError: If the reference cannot be located or the located
                object does not satisfy the transform unit contract.
        """
        if not isinstance(step_ref, str) or not step_ref.strip():
            raise LoadError(str(step_ref), "empty step reference")

        with self._lock:
            key = self._cache_key(step_ref)
            cached = self._cache.get(key)
            if cached is not None:
                return cached

            kind, location, attr = key
            if kind == "registered":
                obj = self._registered[location]
            elif kind == "file":
                obj = self._load_attribute(step_ref, self._load_file(step_ref, Path(location)), attr)
            else:
                obj = self._load_attribute(step_ref, self._load_module(step_ref, location), attr)

            func = as_callable(obj)
            if func is None:
                raise LoadError(step_ref, f"{obj!r} does not provide apply(data)")

            unit = LoadedStep(step_ref, func, run_sync_in_thread=self.run_sync_in_thread)
            self._cache[key] = unit
        logger.debug(f"Resolved step '{step_ref}' -> {kind}:{location}:{attr}")
        return unit

    # ------------------------------------------------------------------
    def _cache_key(self, step_ref: str) -> _CacheKey:
        if step_ref in self._registered:
            return ("registered", step_ref, None)

        target, attr = _split_reference(step_ref)
        if _looks_like_path(target):
            path = Path(target).expanduser()
            if not path.is_absolute():
                path = (self.base_path or Path.cwd()) / path
            return ("file", str(path.resolve()), attr)
        return ("module", target, attr)

    def _load_file(self, step_ref: str, path: Path) -> ModuleType:
        if not path.is_file():
            raise LoadError(step_ref, f"file {path} does not exist")

        module_name = _module_name_for_file(path)
        spec = spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise LoadError(step_ref, f"{path} is not an importable Python file")

        module_obj = module_from_spec(spec)
        sys.modules[module_name] = module_obj
        try:
            spec.loader.exec_module(module_obj)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise LoadError(step_ref, f"import of {path} failed: {e}") from e
        return module_obj

    def _load_module(self, step_ref: str, module_name: str) -> ModuleType:
        try:
            return import_module(module_name)
        except Exception as e:
            raise LoadError(step_ref, f"import of module '{module_name}' failed: {e}") from e

    def _load_attribute(self, step_ref: str, module_obj: ModuleType, attr: Optional[str]) -> Any:
        if attr is not None:
            if not hasattr(module_obj, attr):
                raise LoadError(step_ref, f"'{attr}' not found in {module_obj.__name__}")
            return getattr(module_obj, attr)

        for candidate in DEFAULT_STEP_ATTRIBUTES:
            if hasattr(module_obj, candidate):
                return getattr(module_obj, candidate)
        names = ", ".join(DEFAULT_STEP_ATTRIBUTES)
        raise LoadError(step_ref, f"module {module_obj.__name__} defines none of: {names}")
