"""
Incremental Faith package root.

The simulation core (engine, state, config) is free of any presentation
concerns; hosts drive it through ``GameSession`` or by calling the engine
directly and read state back through its query surface.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
