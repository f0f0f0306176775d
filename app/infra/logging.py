import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Send log records to stdout with a timestamped format."""
    root_logger = logging.getLogger()
    if any(getattr(h, "_fii_handler", False) for h in root_logger.handlers):
        root_logger.setLevel(level.upper())
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler._fii_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # noisy libraries
    for name in ("sqlalchemy", "httpx", "urllib3", "yfinance"):
        logging.getLogger(name).setLevel(logging.WARNING)
