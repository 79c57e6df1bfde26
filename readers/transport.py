"""
PC/SC transport built on pyscard's low level `smartcard.scard` API.

Exposes just what the presence monitor needs: a resource manager context,
reader enumeration, status polling and card sessions whose `transmit` has the
same `(data, sw1, sw2)` shape as pyscard's high level CardConnection.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .exceptions import ApduError, CardReadError, TransportError
from .utils import SMARTCARD_AVAILABLE, get_hex_string, scard

logger = logging.getLogger(__name__)


def _error_message(hresult) -> str:
    try:
        return scard.SCardGetErrorMessage(hresult)
    except Exception:
        return f"0x{hresult & 0xFFFFFFFF:08X}"


class CardSession:
    """Connected card in one reader"""

    def __init__(self, hcard, protocol, reader: str):
        self.hcard = hcard
        self.protocol = protocol
        self.reader = reader

    def transmit(self, apdu: List[int]) -> Tuple[List[int], int, int]:
        hresult, response = scard.SCardTransmit(self.hcard, self.protocol, list(apdu))
        if hresult != scard.SCARD_S_SUCCESS:
            raise CardReadError(f"Card transmit failed: {_error_message(hresult)}")
        if len(response) < 2:
            raise ApduError(f"Invalid APDU response length: {len(response)} bytes (expected >= 2)")
        logger.debug(f"APDU: {get_hex_string(apdu)} -> SW={response[-2]:02X}{response[-1]:02X}")
        return list(response[:-2]), response[-2], response[-1]

    def disconnect(self):
        hresult = scard.SCardDisconnect(self.hcard, scard.SCARD_LEAVE_CARD)
        if hresult != scard.SCARD_S_SUCCESS:
            logger.warning(f"Error disconnecting card: {_error_message(hresult)}")


class PcscTransport:
    """
    Owns the PC/SC resource manager context.

    All methods block and are meant to be run off the event loop.
    """

    def __init__(self):
        if not SMARTCARD_AVAILABLE:
            raise TransportError("pyscard is not available")
        self.hcontext = None

    def establish(self):
        hresult, hcontext = scard.SCardEstablishContext(scard.SCARD_SCOPE_USER)
        if hresult != scard.SCARD_S_SUCCESS:
            raise TransportError(f"Failed to establish PC/SC context: {_error_message(hresult)}")
        self.hcontext = hcontext

    def release(self):
        if self.hcontext is None:
            return
        try:
            scard.SCardReleaseContext(self.hcontext)
        except Exception as e:
            logger.debug(f"Releasing PC/SC context failed: {e}")
        self.hcontext = None

    def list_readers(self) -> List[str]:
        if self.hcontext is None:
            raise TransportError("No PC/SC context")
        hresult, readers = scard.SCardListReaders(self.hcontext, [])
        if hresult == scard.SCARD_E_NO_READERS_AVAILABLE:
            return []
        if hresult != scard.SCARD_S_SUCCESS:
            raise TransportError(f"Failed to list readers: {_error_message(hresult)}")
        return list(readers)

    def get_presence(self, readers: List[str], timeout_ms: int) -> Optional[Dict[str, bool]]:
        """
        Wait for a status change on `readers`.

        Returns reader name -> card present, or None on timeout.
        """
        if self.hcontext is None:
            raise TransportError("No PC/SC context")
        states = [(name, scard.SCARD_STATE_UNAWARE) for name in readers]
        hresult, new_states = scard.SCardGetStatusChange(self.hcontext, timeout_ms, states)
        if hresult == scard.SCARD_E_TIMEOUT:
            return None
        if hresult != scard.SCARD_S_SUCCESS:
            raise TransportError(f"Get status change error: {_error_message(hresult)}")

        presence = {}
        for name, event_state, _atr in new_states:
            presence[name] = bool(event_state & scard.SCARD_STATE_PRESENT) and not (
                event_state & scard.SCARD_STATE_EMPTY
            )
        return presence

    def connect(self, reader: str) -> CardSession:
        if self.hcontext is None:
            raise TransportError("No PC/SC context")
        hresult, hcard, protocol = scard.SCardConnect(
            self.hcontext,
            reader,
            scard.SCARD_SHARE_SHARED,
            scard.SCARD_PROTOCOL_T0 | scard.SCARD_PROTOCOL_T1,
        )
        if hresult != scard.SCARD_S_SUCCESS:
            raise CardReadError(f"Failed to connect to card: {_error_message(hresult)}")
        return CardSession(hcard, protocol, reader)
