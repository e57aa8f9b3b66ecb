"""
Web Application Package
========================
HTTP front for the session manager.
"""

from .server import create_app

__all__ = ["create_app"]
