"""
Exception taxonomy for the conversion pipeline.

Recoverable problems never raise; they are reported through the ``warnings``
list carried by each stage result. Only the fatal categories below raise.
"""

from typing import Iterable, List


class Mocap2DError(Exception):
    """Base class for all conversion failures."""


class MotionInputError(Mocap2DError, ValueError):
    """The caller supplied unusable input (no frames, invalid skeleton, ...)."""


class RetargetError(Mocap2DError, ValueError):
    """Retargeting could not map a single bone."""


class StrictMismatchError(Mocap2DError):
    """The ``strict-fail`` mismatch policy met an unresolved node or reference."""

    def __init__(self, message: str, unresolved: Iterable[str] = ()):
        super().__init__(message)
        self.unresolved: List[str] = list(unresolved)


class SkeletonInvariantError(Mocap2DError, RuntimeError):
    """A converted skeleton still references bones that do not exist."""

    def __init__(self, message: str, missing: Iterable[str] = ()):
        super().__init__(message)
        self.missing: List[str] = list(missing)
