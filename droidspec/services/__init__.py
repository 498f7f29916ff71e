"""Services package for droidspec."""

from .parsing import ParsingService
from .rendering import RenderingService
from .scaffold import ScaffoldService
from .validation import ValidationService

__all__ = [
    "ParsingService",
    "RenderingService",
    "ScaffoldService",
    "ValidationService",
]
