"""
Report generator FastAPI API.
"""

from .main import app

__all__ = ["app"]
