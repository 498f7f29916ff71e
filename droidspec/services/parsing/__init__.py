"""Kotlin DSL build script parsing."""

from .service import ParseInput, ParseOutput, ParsingService, ScriptParser, parse_build_script

__all__ = ["ParseInput", "ParseOutput", "ParsingService", "ScriptParser", "parse_build_script"]
