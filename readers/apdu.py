"""
APDU commands and ISO 7816-4 status word handling for smart card communication.
"""

from enum import Enum
from typing import List


class APDU:
    """Common APDU commands for the Thai ID card"""

    # Thai ID applet (AID A0 00 00 00 54 48 00 01)
    SELECT_THAI_ID_APP = [0x00, 0xA4, 0x04, 0x00, 0x08, 0xA0, 0x00, 0x00, 0x00, 0x54, 0x48, 0x00, 0x01]

    # GET RESPONSE header, Le is appended per call
    GET_RESPONSE = [0x00, 0xC0, 0x00, 0x00]

    @staticmethod
    def get_response(length: int) -> List[int]:
        """Create GET RESPONSE command for `length` pending bytes"""
        return APDU.GET_RESPONSE + [length & 0xFF]

    @staticmethod
    def from_hex(hex_string: str) -> List[int]:
        """
        Parse a configured APDU hex string ("80B0000402000D" or "80 B0 00 04 ...").

        Spaces are removed and the rest is read hex pair by hex pair.
        Pairs that are not valid hex are skipped, a trailing odd nibble is ignored.
        """
        cleaned = hex_string.replace(" ", "")
        result = []
        for i in range(0, len(cleaned) - 1, 2):
            try:
                result.append(int(cleaned[i:i + 2], 16))
            except ValueError:
                continue
        return result


class StatusCategory(Enum):
    """Diagnostic category of a status word (logging only)"""
    SUCCESS = "success"
    MORE_DATA = "more_data"
    SECURITY_NOT_SATISFIED = "security_not_satisfied"
    FILE_NOT_FOUND = "file_not_found"
    WRONG_PARAMETERS = "wrong_parameters"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


# (SW1, SW2) -> description, ISO 7816-4
_STATUS_DESCRIPTIONS = {
    (0x90, 0x00): "Success",
    (0x62, 0x00): "No information given",
    (0x62, 0x81): "Part of returned data may be corrupted",
    (0x62, 0x82): "End of file reached before reading",
    (0x63, 0x00): "Verification failed",
    (0x64, 0x00): "State of non-volatile memory unchanged",
    (0x65, 0x00): "State of non-volatile memory changed",
    (0x65, 0x81): "Memory failure",
    (0x66, 0x00): "Security-related issue",
    (0x67, 0x00): "Wrong length",
    (0x68, 0x00): "Functions in CLA not supported",
    (0x68, 0x81): "Logical channel not supported",
    (0x68, 0x82): "Secure messaging not supported",
    (0x69, 0x82): "Security status not satisfied",
    (0x69, 0x83): "Authentication method blocked",
    (0x69, 0x84): "Referenced data invalidated",
    (0x69, 0x85): "Conditions of use not satisfied",
    (0x69, 0x86): "Command not allowed (no EF selected)",
    (0x6A, 0x80): "Incorrect parameters in command data field",
    (0x6A, 0x81): "Function not supported",
    (0x6A, 0x82): "File not found",
    (0x6A, 0x83): "Record not found",
    (0x6A, 0x84): "Not enough memory space",
    (0x6A, 0x86): "Incorrect parameters P1-P2",
    (0x6A, 0x88): "Referenced data not found",
    (0x6B, 0x00): "Wrong parameters P1-P2",
    (0x6D, 0x00): "Instruction code not supported",
    (0x6E, 0x00): "Class not supported",
    (0x6F, 0x00): "No precise diagnosis",
}

_SECURITY_STATUSES = {(0x63, 0x00), (0x66, 0x00), (0x69, 0x82), (0x69, 0x83), (0x69, 0x84), (0x69, 0x85)}
_NOT_FOUND_STATUSES = {(0x6A, 0x82), (0x6A, 0x83), (0x6A, 0x88)}
_WRONG_PARAMETER_STATUSES = {(0x67, 0x00), (0x6A, 0x80), (0x6A, 0x86), (0x6B, 0x00)}
_UNSUPPORTED_STATUSES = {(0x68, 0x00), (0x68, 0x81), (0x68, 0x82), (0x69, 0x86), (0x6A, 0x81), (0x6D, 0x00), (0x6E, 0x00)}


def interpret_status(sw1: int, sw2: int) -> str:
    """Human readable description of a status word"""
    if sw1 == 0x61:
        return "More data available"
    if sw1 == 0x6C:
        return "Wrong Le field"
    if sw1 == 0x63 and 0xC0 <= sw2 <= 0xCF:
        return "Counter verification"
    return _STATUS_DESCRIPTIONS.get((sw1, sw2), "Unknown error")


def classify_status(sw1: int, sw2: int) -> StatusCategory:
    """Map a status word to its diagnostic category"""
    sw = (sw1, sw2)
    if sw == (0x90, 0x00):
        return StatusCategory.SUCCESS
    if sw1 == 0x61:
        return StatusCategory.MORE_DATA
    if sw in _SECURITY_STATUSES or (sw1 == 0x63 and 0xC0 <= sw2 <= 0xCF):
        return StatusCategory.SECURITY_NOT_SATISFIED
    if sw in _NOT_FOUND_STATUSES:
        return StatusCategory.FILE_NOT_FOUND
    if sw in _WRONG_PARAMETER_STATUSES or sw1 == 0x6C:
        return StatusCategory.WRONG_PARAMETERS
    if sw in _UNSUPPORTED_STATUSES:
        return StatusCategory.UNSUPPORTED
    return StatusCategory.UNKNOWN
