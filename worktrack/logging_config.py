"""
Logging configuration for worktrack.

Quiet by default; --verbose (or WORKTRACK_VERBOSE=1) turns on debug output.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose output.

    Args:
        quiet: If True, suppress warnings and keep library loggers at ERROR.
    """
    if quiet:
        warnings.filterwarnings("ignore")
        logging.getLogger("yaml").setLevel(logging.ERROR)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("worktrack").setLevel(logging.DEBUG)


def configure_ops_log(work_dir):
    """Configure a persistent operations log for a work directory.

    Writes to {work_dir}/worktrack-ops.log using a rotating file handler
    (1MB max, 3 backups). Every file mutation made by a consolidation is
    recorded here regardless of --verbose.
    Returns the handler so the caller can remove it when done.
    """
    log_path = Path(work_dir) / "worktrack-ops.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    logger = logging.getLogger("worktrack")
    logger.addHandler(handler)
    # Let INFO through even in quiet mode
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)

    return handler
