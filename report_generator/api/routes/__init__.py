"""
API routes for the report generator.
"""

from .export import router as export_router
from .generate import router as generate_router

__all__ = [
    "export_router",
    "generate_router",
]
