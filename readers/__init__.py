"""
Smart Card Readers Module
=========================
PC/SC transport, presence monitoring and the Thai national ID card reader.

Supported cards:
- Thai national ID card (บัตรประจำตัวประชาชน)
"""

from .apdu import APDU, StatusCategory, classify_status, interpret_status
from .exceptions import ApduError, CardReadError, CardReaderError, TransportError
from .models import CardEvent, CardEventType, IdentityRecord
from .monitor import CardMonitor, MonitorState
from .thai_id import ThaiIDCardReader
from .transport import CardSession, PcscTransport
from .utils import SMARTCARD_AVAILABLE, PILLOW_AVAILABLE

__all__ = [
    'APDU',
    'StatusCategory',
    'classify_status',
    'interpret_status',
    'ApduError',
    'CardReadError',
    'CardReaderError',
    'TransportError',
    'CardEvent',
    'CardEventType',
    'IdentityRecord',
    'CardMonitor',
    'MonitorState',
    'ThaiIDCardReader',
    'CardSession',
    'PcscTransport',
    'SMARTCARD_AVAILABLE',
    'PILLOW_AVAILABLE',
]
