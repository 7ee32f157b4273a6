"""
ARBSCOPE - Main Entry Point
Serves the assessment API.
"""
import uvicorn
from arbscope.config.settings import get_settings
from arbscope.utils.logger import setup_logging, get_logger

logger = get_logger("main")


def run_api():
    """Run the FastAPI application."""
    settings = get_settings()
    setup_logging()
    logger.info("starting_arbscope", version=settings.version, port=settings.port)
    uvicorn.run(
        "arbscope.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run_api()
