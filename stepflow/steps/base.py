"""Transform unit contract and adapters."""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Callable, Protocol, runtime_checkable

from ..errors import StepExecutionError


@runtime_checkable
class TransformUnit(Protocol):
    """Anything exposing ``apply(data) -> data``, sync or async."""

    def apply(self, data: Any) -> Any: ...


class Step:
    """Base class for steps implemented as Python classes.

    Subclasses override :meth:`apply`. It may be a coroutine function.
    """

    def apply(self, data: Any) -> Any:  # pragma: no cover - interface
        raise NotImplementedError


class LoadedStep:
    """A resolved step reference, ready to be invoked by the coordinator."""

    def __init__(
        self,
        step_ref: str,
        func: Callable[[Any], Any],
        run_sync_in_thread: bool = True,
    ) -> None:
        self.step_ref = step_ref
        self.func = func
        self.run_sync_in_thread = run_sync_in_thread

    async def apply(self, data: Any) -> Any:
        """Run the underlying unit against ``data``.

        Raises:
            StepExecutionError: Wrapping whatever the unit raised.
        """
        try:
            if _is_async_callable(self.func):
                return await self.func(data)
            if self.run_sync_in_thread:
                result = await asyncio.to_thread(self.func, data)
            else:
                result = self.func(data)
            if inspect.isawaitable(result):
                result = await result
            return result
        except StepExecutionError:
            raise
        except Exception as e:
            raise StepExecutionError(self.step_ref, f"{type(e).__name__}: {e}") from e

    def __repr__(self) -> str:
        return f"LoadedStep({self.step_ref!r})"


def _is_async_callable(obj: Any) -> bool:
    while isinstance(obj, functools.partial):
        obj = obj.func
    return inspect.iscoroutinefunction(obj) or inspect.iscoroutinefunction(
        getattr(obj, "__call__", None)
    )


def as_callable(obj: Any) -> Callable[[Any], Any] | None:
    """Return the ``apply`` callable for ``obj`` or ``None`` if unsupported.

    Accepts objects with a callable ``apply``, classes that can be built
    without arguments, and plain callables.
    """
    if inspect.isclass(obj):
        if not callable(getattr(obj, "apply", None)):
            return None
        try:
            obj = obj()
        except TypeError:
            return None
    apply = getattr(obj, "apply", None)
    if callable(apply):
        return apply
    if callable(obj) and not inspect.ismodule(obj):
        return obj
    return None
