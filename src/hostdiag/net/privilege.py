"""
Privilege check for PID-level socket detail.
"""

import ctypes
import logging
import os
import sys

logger = logging.getLogger(__name__)


def is_elevated() -> bool:
    """Check whether the current process runs with administrative rights."""
    try:
        if sys.platform == "win32":
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        return os.geteuid() == 0
    except (AttributeError, OSError) as e:
        logger.debug(f"Privilege check failed: {e}")
        return False
