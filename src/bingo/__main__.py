"""Entry point for running Bingo via ``python -m bingo``."""

from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
    """Start the FastAPI-powered Bingo server."""

    host = os.environ.get("BINGO_HOST", "0.0.0.0")
    port = int(os.environ.get("BINGO_PORT", "8000"))
    log_level = os.environ.get("BINGO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    uvicorn.run("bingo.ui:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
