"""
Shared utilities and dependency checks for card readers.
"""

import logging

logger = logging.getLogger(__name__)

# Check for pyscard (needs the PC/SC runtime: pcsclite on Linux/macOS, WinSCard on Windows)
try:
    from smartcard import scard
    SMARTCARD_AVAILABLE = True
except ImportError:
    SMARTCARD_AVAILABLE = False
    scard = None
    logger.warning("pyscard not installed - card reading disabled")

# Check for Pillow
try:
    from PIL import Image
    PILLOW_AVAILABLE = True
except ImportError:
    PILLOW_AVAILABLE = False
    Image = None
    logger.warning("Pillow not installed - photo inspection disabled")


def get_hex_string(data) -> str:
    """Convert bytes/list to hex string"""
    return ' '.join(f'{b:02X}' for b in data)
