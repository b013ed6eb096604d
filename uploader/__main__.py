"""CLI entrypoint for launching the uploader."""

import logging
import sys

import uvicorn

from uploader.core.config import ConfigError, get_settings
from uploader.main import create_app

logger = logging.getLogger("uploader")


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        settings = get_settings()
    except ConfigError as exc:
        logger.critical("invalid configuration: %s", exc)
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level.upper())
    app = create_app(settings)

    logger.info("start server on %s:%d", settings.host, settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
