"""
Utility functions used throughout the escalation package.
"""

import logging
import sys
from typing import Sequence


NO_DOSE = 'NoDose'


def setup_logging(level_str: str = "INFO"):
    """
    Configure logging for scripts and notebooks using the package.

    The package itself only creates loggers; it never configures handlers.
    """
    numeric_level = getattr(logging, level_str.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level_str}")

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)-5.5s] [%(name)-24.24s]: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("escalation").info(f"Logging initialized at level {level_str.upper()}")


def dose_labels(num_doses: int) -> Sequence[str]:
    """Labels used for dose-levels in tabular output: 'NoDose', '1', ..., 'D'."""
    return [NO_DOSE] + [str(d) for d in range(1, num_doses + 1)]
