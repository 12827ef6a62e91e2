"""
Logging for the escrow auction.

All loggers hang off the ``escrow_auction`` namespace, one child per
subsystem:

- ``ledger``: balance mutations and rollbacks (DEBUG)
- ``auction``: lifecycle, accepted bids and money movements (INFO),
  failed transfers and emergency sweeps (WARNING)
- ``events``: every emitted event (DEBUG), failing listeners (ERROR)
- ``transfer``: rejected payments in the in-memory gateway
- ``cli``: demo configuration (DEBUG) and aborted demos (ERROR)

Console output is colored through colorlog. A plain-text file log is
only written when ``log_to_file`` is set.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog

LOG_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "escrow_auction.log"

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class AuctionLogger:
    """Owns the handlers of the ``escrow_auction`` logger tree."""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
    ):
        """
        Attach handlers once; later calls are no-ops until ``reset()``.

        Args:
            level: Threshold for every handler
            log_dir: Where the log file goes (./logs if None)
            log_to_file: Also write ``escrow_auction.log``
        """
        if cls._initialized:
            return

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(exist_ok=True, parents=True)

        root_logger = logging.getLogger("escrow_auction")
        root_logger.setLevel(level)

        # Handlers from a previous setup may point at closed streams
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers.clear()

        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(colorlog.ColoredFormatter(
            LOG_FORMAT,
            datefmt=DATE_FORMAT,
            log_colors=LEVEL_COLORS,
        ))
        root_logger.addHandler(console_handler)

        if log_to_file and cls._log_dir:
            file_handler = logging.FileHandler(cls._log_dir / LOG_FILE_NAME)
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Subsystem logger, e.g. ``get_logger("ledger")``."""
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"escrow_auction.{name}")

    @classmethod
    def reset(cls) -> None:
        cls._initialized = False
        cls._log_dir = None


def get_logger(name: str) -> logging.Logger:
    return AuctionLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """Reconfigure handlers, replacing any from an earlier setup."""
    AuctionLogger.reset()
    AuctionLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
