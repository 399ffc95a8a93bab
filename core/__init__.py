"""Core components of the game chat translator.

This package contains the shared data container, the translation cache, the engine interface
and adapters, the batchers, and the translation pipeline.
"""

from core.shared_data import SharedData
from core.version import VERSION

__all__: list[str] = [
    "VERSION",
    "SharedData",
]
