"""Step contracts and resolution."""

from .base import LoadedStep, Step, TransformUnit
from .loader import StepLoader

__all__ = ["LoadedStep", "Step", "StepLoader", "TransformUnit"]
