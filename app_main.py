"""Application entry point for the classroom feedback and quiz service."""

from __future__ import annotations

from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.server.api_server import run_api_server
from classroom_app.storage import create_storage
from classroom_app.utils.logging_config import configure_logging
from classroom_app.utils.settings import load_settings


def main() -> None:
    """Load settings, initialize logging and storage, then serve the API."""
    settings = load_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting classroom service…")

    storage = create_storage(settings.database_url)
    logger.info("Using %s", type(storage).__name__)

    classroom_manager = ClassroomManager(storage)
    run_api_server(classroom_manager, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
