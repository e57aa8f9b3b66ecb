"""
Sessions Package
=================
Tracks connected multimeters behind generated session identifiers.
"""

from .session_manager import (
    Session,
    SessionManager,
    create_device,
    parse_device_type,
)

__all__ = [
    "Session",
    "SessionManager",
    "create_device",
    "parse_device_type",
]
