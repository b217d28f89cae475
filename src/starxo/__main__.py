"""Entry point for running StarXO via ``python -m starxo``."""

from __future__ import annotations

import logging

import uvicorn

from .config import get_settings


def main() -> None:
    """Start the FastAPI-powered StarXO web server."""

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    uvicorn.run(
        "starxo.ui:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
