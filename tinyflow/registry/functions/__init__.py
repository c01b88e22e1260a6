"""
Built-in functions.

Importing this package registers every built-in in the global registry.
"""

from tinyflow.registry.functions import batch, control, core, iteration, transform

__all__ = ["batch", "control", "core", "iteration", "transform"]
