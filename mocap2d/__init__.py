"""
mocap2d

Retargets decoded 3D humanoid motion onto 2D skeletal animation documents.

Features:
- Canonical 18-joint humanoid with alias matching and fallbacks
- Automatic axis inference and out-of-plane aware 3D to 2D projection
- Temporal conditioning of angle and hip translation tracks
- Optional skeleton conversion (spine-first / fbx-first) with reference repair
- Non-destructive animation merge and sequential batch conversion
"""

__version__ = "1.0.0"

from mocap2d.core.errors import (
    Mocap2DError,
    MotionInputError,
    RetargetError,
    SkeletonInvariantError,
    StrictMismatchError,
)
from mocap2d.core.pipeline import BatchConverter, ConvertOptions, convert

__all__ = [
    "__version__",
    "convert",
    "ConvertOptions",
    "BatchConverter",
    "Mocap2DError",
    "MotionInputError",
    "RetargetError",
    "SkeletonInvariantError",
    "StrictMismatchError",
]
