"""Lightweight logging setup for applications embedding Lockbox."""

import logging
import sys
from typing import Optional, Union

from .config import load_settings


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    # Configure root logger once; keep output simple for terminals.
    if level is None:
        level = load_settings().log_level
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )
