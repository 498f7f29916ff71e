"""Build descriptor validation."""

from .globs import glob_matches
from .service import Severity, ValidationIssue, ValidationReport, ValidationService

__all__ = ["Severity", "ValidationIssue", "ValidationReport", "ValidationService", "glob_matches"]
