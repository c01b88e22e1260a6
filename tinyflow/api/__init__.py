"""
API package - FastAPI routes and schemas.
"""

from tinyflow.api.routes import functions, workflows

__all__ = ["functions", "workflows"]
