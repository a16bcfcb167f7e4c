"""
Application setup shared by the command-line entry points.
"""

import logging
import sys

from mocap2d import __version__

HANDLER_NAME = "mocap2d-console"


def setup_logging(level: str = "INFO"):
    """Configure logging for the application."""
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    # Create formatter
    formatter = logging.Formatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    # Console handler (stderr keeps stdout free for rich output)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    console_handler.set_name(HANDLER_NAME)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    # Repeated calls replace the previous console handler
    for handler in list(root_logger.handlers):
        if handler.get_name() == HANDLER_NAME:
            root_logger.removeHandler(handler)
    root_logger.addHandler(console_handler)

    logging.getLogger('mocap2d').setLevel(numeric_level)

    logger = logging.getLogger(__name__)
    logger.debug("mocap2d v%s logging at %s", __version__, logging.getLevelName(numeric_level))
