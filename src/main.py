"""Application entry point for the cruise contract parser API server."""

import argparse

import uvicorn

from src.api.app import app
from src.utils.config import ServerConfig, load_config
from src.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def resolve_server(
    server: ServerConfig, host: str | None = None, port: int | None = None
) -> ServerConfig:
    """Apply command-line overrides on top of the configured bind address."""
    return ServerConfig(
        host=host if host is not None else server.host,
        port=port if port is not None else server.port,
    )


def main(argv: list[str] | None = None) -> None:
    """Start the FastAPI application server."""
    parser = argparse.ArgumentParser(description="Cruise Contract Parser API server")
    parser.add_argument("--host", help="Bind host (default from config)")
    parser.add_argument("--port", type=int, help="Bind port (default from config)")
    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(config.log_level)
    server = resolve_server(config.server, args.host, args.port)
    logger.info("Serving parser API on %s:%d", server.host, server.port)
    uvicorn.run(app, host=server.host, port=server.port)


if __name__ == "__main__":
    main()
