# promo-allocation-backend/app/core/logging.py

import logging
import sys

from app.core.config import settings


def setup_logging() -> None:
    """Configure root logging once for the API process."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL echo is noisy; only surface it in DEBUG mode
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )
