"""
TinyFlow - An async execution engine for visual workflow graphs.

Workflows are graphs of named function nodes that share a mutable store
and route on the action each function returns.
"""

__version__ = "1.0.0"
