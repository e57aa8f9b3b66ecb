"""
TSMultimeter - HTTP Server
===========================
JSON API consumed by the desktop front end.

Every failure is returned as ``{"error": "<message>"}`` with a status code
derived from the error category.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from hardware_interface import (
    ConfigError,
    ConnectedDevice,
    DeviceConnectionError,
    DeviceExecutionError,
    DeviceStatus,
    DeviceTimeoutError,
    InvalidCommandError,
    Measurement,
    MultimeterError,
    ParseError,
    SessionNotFoundError,
    list_serial_ports,
)
from sessions import SessionManager


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class ConnectRequest(BaseModel):
    device_type: str
    port: Optional[str] = None


class CommandRequest(BaseModel):
    command: str


class MessageResponse(BaseModel):
    message: str


class CommandResponse(BaseModel):
    response: str


class PortsResponse(BaseModel):
    ports: List[str]


# Most specific classes first
ERROR_STATUS: Dict[Type[MultimeterError], int] = {
    SessionNotFoundError: 404,
    ConfigError: 400,
    InvalidCommandError: 400,
    DeviceConnectionError: 409,
    DeviceTimeoutError: 504,
    DeviceExecutionError: 502,
    ParseError: 502,
}


def status_for(error: MultimeterError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status_code
    return 500


# =============================================================================
# APPLICATION
# =============================================================================

def create_app(manager: Optional[SessionManager] = None) -> FastAPI:
    """
    Build the FastAPI application around a session manager.

    Args:
        manager: Session manager to expose; a default one is created if omitted

    Returns:
        Configured application
    """
    manager = manager or SessionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("TSMultimeter server started")
        yield
        await manager.shutdown()
        logger.info("TSMultimeter server stopped")

    app = FastAPI(
        title="TSMultimeter",
        description="Multimeter connection and measurement backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.manager = manager

    # The Electron front end is served from file:// or a dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MultimeterError)
    async def multimeter_error_handler(request: Request, exc: MultimeterError):
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_for(exc), content={"error": str(exc)})

    # -------------------------------------------------------------------------
    # API ENDPOINTS
    # -------------------------------------------------------------------------

    @app.post("/connect", response_model=ConnectedDevice)
    async def connect_device(request: ConnectRequest):
        """Connect to a device and open a session."""
        logger.info(f"Incoming connect request: {request.device_type} port={request.port}")
        return await manager.connect(request.device_type, request.port)

    @app.post("/disconnect/{device_id}", response_model=MessageResponse)
    async def disconnect_device(device_id: str):
        """Close a session."""
        return MessageResponse(message=await manager.disconnect(device_id))

    @app.get("/measurement/{device_id}", response_model=Measurement)
    async def get_measurement(device_id: str):
        """Read the current primary measurement."""
        return await manager.get_measurement(device_id)

    @app.get("/status", response_model=List[DeviceStatus])
    async def list_devices():
        """List all connected devices."""
        return await manager.list_connected()

    @app.get("/status/{device_id}", response_model=DeviceStatus)
    async def get_status(device_id: str):
        """Status of one device."""
        return await manager.get_status(device_id)

    @app.post("/reset/{device_id}", response_model=MessageResponse)
    async def reset_device(device_id: str):
        """Reset a device to its default state."""
        return MessageResponse(message=await manager.reset(device_id))

    @app.post("/command/{device_id}", response_model=CommandResponse)
    async def send_command(device_id: str, request: CommandRequest):
        """Send a raw protocol command."""
        return CommandResponse(response=await manager.send_raw_command(device_id, request.command))

    @app.get("/ports", response_model=PortsResponse)
    async def get_ports():
        """List serial ports available on this machine."""
        return PortsResponse(ports=list_serial_ports())

    return app


app = create_app()
