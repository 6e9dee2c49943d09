"""
Executive Brief: Entry Point.

Single entry point: `python main.py` serves the dashboard API (and the
scheduled summaries) with uvicorn.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

import uvicorn

from exec_brief.api.server import create_app
from exec_brief.app import build_context
from exec_brief.config import settings


def main() -> None:
    app = create_app(build_context())
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT, log_config=None)


if __name__ == "__main__":
    main()
