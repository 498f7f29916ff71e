"""
droidspec: Typed Android build descriptors.

Parses Kotlin DSL application build scripts into validated, serializable
descriptors and renders them back into canonical build scripts.
"""

__version__ = "1.0.0"
__author__ = "droidspec Team"
