"""
Multimeter Errors
=================

Exception hierarchy shared by the wire codec, the device variants and the
session manager.
"""

from __future__ import annotations


class MultimeterError(Exception):
    """Base exception for all multimeter backend errors"""

    label = "Multimeter error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        if self.message:
            return f"{self.label}: {self.message}"
        return self.label


class DeviceConnectionError(MultimeterError):
    """Raised when the device is not connected or the transport fails"""
    label = "Connection error"


class ConfigError(DeviceConnectionError):
    """Raised when required setup (e.g. a port name) is missing or invalid"""
    label = "Configuration error"


class DeviceTimeoutError(MultimeterError):
    """Raised when no acknowledgement arrives within the ACK window"""
    label = "Timeout error"


class ParseError(MultimeterError):
    """Raised when a response is malformed or contains an unknown token"""
    label = "Parse error"


class DeviceExecutionError(MultimeterError):
    """Raised when the instrument reports an execution or no-data error"""
    label = "Device error"


class InvalidCommandError(MultimeterError):
    """Raised when the instrument rejects the command syntax"""
    label = "Invalid command"


class SessionNotFoundError(MultimeterError):
    """Raised when a session identifier is unknown"""
    label = "Not found"
