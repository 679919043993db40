import logging
import sys
from typing import Optional


def setup_logging(level: Optional[str] = None) -> None:
    """Setup application logging configuration."""

    if level is None:
        from ..config import get_settings
        level = get_settings().log_level

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )
    # SQL echo is controlled by DATABASE_ECHO, keep the root level from doubling it
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance."""
    return logging.getLogger(name)
