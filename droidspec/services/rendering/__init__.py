"""Kotlin DSL build script rendering."""

from .service import RenderInput, RenderOutput, RenderingService, ScriptRenderer, render_build_script

__all__ = ["RenderInput", "RenderOutput", "RenderingService", "ScriptRenderer", "render_build_script"]
