"""carshow API service entry point.

This module provides the application instance for ASGI servers (uvicorn)
and a run() function for direct execution.
"""

import logging

from carshow.api import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# What uvicorn references: carshow.api.main:app
app = create_app()


def run() -> None:
    """Run the API server using uvicorn.

    Called by the carshow-api console script.
    """
    import uvicorn

    from carshow.core.settings import get_settings

    # Exits with status 1 on invalid configuration
    settings = get_settings()

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logger.info("Starting car show API on %s:%d", settings.api_host, settings.api_port)

    uvicorn.run(
        "carshow.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


if __name__ == "__main__":
    run()
