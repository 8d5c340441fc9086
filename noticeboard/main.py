"""
Noticeboard worker — Entry point.

Configures logging and serves the scrape trigger endpoint.
"""

import logging
from pathlib import Path

from noticeboard.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("noticeboard")


def configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if settings.error_log_path:
        # Errors from detached jobs also go to disk.
        path = Path(settings.error_log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(logging.ERROR)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def main() -> None:
    configure_logging()
    from noticeboard.server import app

    logger.info("Noticeboard worker listening on http://%s:%d", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
