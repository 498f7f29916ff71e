"""Template build descriptors."""

from .service import ScaffoldInput, ScaffoldOutput, ScaffoldService, flutter_app_descriptor

__all__ = ["ScaffoldInput", "ScaffoldOutput", "ScaffoldService", "flutter_app_descriptor"]
