"""Logging setup shared by the CLI and the HTTP app."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    root.setLevel(log_level)
    logging.getLogger("httpx").setLevel(logging.WARNING)
