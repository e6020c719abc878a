"""
Shared helpers: logger setup and secret masking for log output.
"""

import logging
import os
from typing import Optional, Union

logger = logging.getLogger("quirk_wallets")

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logger(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Configure the package logger once.

    Args:
        level: Logging level name or number. Falls back to the
            ``QUIRK_LOG_LEVEL`` environment variable, then ``INFO``.

    Returns:
        logging.Logger: The package root logger.
    """
    resolved = level if level is not None else os.getenv("QUIRK_LOG_LEVEL", "INFO")
    if isinstance(resolved, str):
        resolved = resolved.upper()

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(resolved)
    return logger


def mask_secret(value: Optional[str], show_chars: int = 4) -> str:
    """
    Mask a sensitive value, keeping the first and last few characters.

    Example:
        mask_secret("https://base-sepolia.g.alchemy.com/v2/abcdef123456")
        # 'http...3456'
    """
    if not value or len(value) <= show_chars * 2:
        return "***"
    return f"{value[:show_chars]}...{value[-show_chars:]}"
