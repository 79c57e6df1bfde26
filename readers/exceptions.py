"""
Exceptions raised while talking to card readers.
"""

from .apdu import classify_status, interpret_status


class CardReaderError(Exception):
    """Base class for card reader failures"""


class TransportError(CardReaderError):
    """PC/SC session could not be established or was lost"""


class CardReadError(CardReaderError):
    """Card could not be connected or read"""


class ApduError(CardReadError):
    """Card answered with a non-success status word or a malformed response"""

    def __init__(self, message: str, sw1: int = 0, sw2: int = 0):
        super().__init__(message)
        self.sw1 = sw1
        self.sw2 = sw2

    @classmethod
    def from_status(cls, context: str, sw1: int, sw2: int) -> "ApduError":
        return cls(
            f"{context} failed with status: SW1={sw1:02X} SW2={sw2:02X} ({interpret_status(sw1, sw2)})",
            sw1,
            sw2,
        )

    @property
    def category(self):
        return classify_status(self.sw1, self.sw2)
