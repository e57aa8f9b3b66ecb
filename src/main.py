"""
TSMultimeter Backend - Main Application Entry Point
====================================================
Starts the HTTP server the desktop front end talks to.

It initializes all subsystems:
- Logging (console + rotating file)
- Configuration (YAML)
- Session manager for Fluke 289/287 and mock multimeters
- FastAPI application served by uvicorn
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import uvicorn
import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from hardware_interface import FlukeConfig, MockConfig, MultimeterError, list_serial_ports
from sessions import SessionManager
from webapp.server import create_app


SRC_DIR = Path(__file__).parent
PROJECT_ROOT = SRC_DIR.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "main_config.yaml"

VERSION = "0.1.0"


# =============================================================================
# CONFIGURATION
# =============================================================================

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(8080, gt=0, lt=65536)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: Path = PROJECT_ROOT / "logs"

    @field_validator("directory")
    @classmethod
    def anchor_to_project_root(cls, value: Path) -> Path:
        # Relative to the project root
        return value if value.is_absolute() else PROJECT_ROOT / value


class AppConfig(BaseModel):
    """Top-level application configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    fluke: FlukeConfig = Field(default_factory=FlukeConfig)
    mock: MockConfig = Field(default_factory=MockConfig)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to configuration YAML file

    Returns:
        Parsed configuration; defaults if the file does not exist
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.warning(f"Config file not found: {path}")
        return AppConfig()

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    logger.info(f"Configuration loaded from {path}")
    return AppConfig.model_validate(data)


def setup_logging(verbose: bool = False, config: Optional[LoggingConfig] = None) -> None:
    """Configure logging."""
    config = config or LoggingConfig()
    logger.remove()  # Remove default handler

    level = "DEBUG" if verbose else config.level

    # Console handler with custom format
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True
    )

    # File handler for debug logs
    config.directory.mkdir(parents=True, exist_ok=True)

    logger.add(
        config.directory / "tsmultimeter_{time}.log",
        rotation="10 MB",
        retention="7 days",
        level="DEBUG"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="TSMultimeter backend - multimeter connection and measurement server"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Address to bind (overrides config)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (overrides config)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--list-ports",
        action="store_true",
        help="Print available serial ports and exit"
    )
    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    setup_logging(args.verbose, config.logging)

    if args.list_ports:
        try:
            ports = list_serial_ports()
        except MultimeterError as e:
            logger.error(str(e))
            return 1
        for port in ports:
            print(port)
        return 0

    host = args.host or config.server.host
    port = args.port or config.server.port

    manager = SessionManager(fluke_config=config.fluke, mock_config=config.mock)
    app = create_app(manager)

    logger.info(f"Starting TSMultimeter backend v{VERSION} on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
