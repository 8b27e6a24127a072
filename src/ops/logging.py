"""
Logging setup.
"""

from __future__ import annotations

import logging
import os


def setup_logging(log_path: str, log_level: str, quiet_web: bool = True) -> None:
    """
    Log to both log_path and stderr.

    quiet_web keeps uvicorn's per-request access log out of the scan log;
    the status API is polled often.
    """
    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
    )

    if quiet_web:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
