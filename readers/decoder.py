"""
Thai ID card field decoding.

Text on the card is TIS-620 (read here with the cp874 superset), with '#'
(0x23) separating the parts of composite fields such as names and addresses.
"""

import base64
import io
import logging
import unicodedata
from typing import List, NamedTuple, Optional, Sequence, Tuple

from .utils import PILLOW_AVAILABLE, Image

logger = logging.getLogger(__name__)

LEGACY_ENCODING = "cp874"
FIELD_DELIMITER = "#"
DELIMITER_BYTE = 0x23

# Card value for cards that never expire
LIFETIME_EXPIRY = "99999999"
LIFETIME_EXPIRY_DATE = "29991231"

BUDDHIST_ERA_OFFSET = 543

THAI_MONTHS = [
    "ม.ค.", "ก.พ.", "มี.ค.", "เม.ย.", "พ.ค.", "มิ.ย.",
    "ก.ค.", "ส.ค.", "ก.ย.", "ต.ค.", "พ.ย.", "ธ.ค.",
]


def _normalize(text: str) -> str:
    """Collapse whitespace and compose to NFC"""
    return unicodedata.normalize("NFC", " ".join(text.split()))


def _decode(data: bytes) -> str:
    return bytes(data).decode(LEGACY_ENCODING, errors="replace")


def decode_tis620(data: bytes) -> str:
    """Decode a single-value field: delimiters become spaces, whitespace collapsed"""
    return _normalize(_decode(data).replace(FIELD_DELIMITER, " "))


def split_tis620(data: bytes, parts: int) -> List[str]:
    """
    Decode a composite field and split it into exactly `parts` values.

    Missing trailing parts are padded with empty strings; anything past the
    last delimiter counted stays in the final part.
    """
    values = [_normalize(p) for p in _decode(data).split(FIELD_DELIMITER, parts - 1)]
    while len(values) < parts:
        values.append("")
    return values


# =============================================================================
# Address heuristics
# =============================================================================

class AddressParts(NamedTuple):
    house_no: str
    village_no: str
    lane: str
    road: str
    tambol: str
    amphur: str
    province: str

    @property
    def combined(self) -> str:
        ordered = [self.house_no, self.village_no, self.road, self.lane,
                   self.tambol, self.amphur, self.province]
        return " ".join(p for p in ordered if p)


def _is_address_byte(b: int) -> bool:
    return b == DELIMITER_BYTE or 0x20 <= b <= 0x7E or 0xA1 <= b <= 0xFB


def truncate_address_garbage(data: bytes) -> bytes:
    """Cut the raw address at the first byte outside ASCII printable / Thai range"""
    end = 0
    for b in data:
        if not _is_address_byte(b):
            break
        end += 1
    return bytes(data[:end])


def _is_thai_letter(ch: str) -> bool:
    # consonants, vowels/sara, leading vowels and tone marks; Thai digits excluded
    return ("\u0e01" <= ch <= "\u0e2e"
            or "\u0e30" <= ch <= "\u0e3a"
            or "\u0e40" <= ch <= "\u0e4e")


def strip_division_garbage(text: str) -> str:
    """
    Keep only Thai letters, vowels, tone marks and spaces in an administrative
    division name, then drop one-character words (stray decoded bytes).
    """
    clean = "".join(ch for ch in text if ch == " " or _is_thai_letter(ch))
    return " ".join(word for word in clean.split() if len(word) >= 2)


def select_division_indices(parts: Sequence[str]) -> Tuple[int, int, int]:
    """
    Pick tambol/amphur/province positions.

    7-part layout: house#village#lane#road#tambol#amphur#province  -> 4, 5, 6
    8-part layout: house#village#lane#road##tambol#amphur#province -> 5, 6, 7
    """
    part4 = strip_division_garbage(parts[4]) if len(parts) > 4 else ""
    if not part4:
        return 5, 6, 7
    return 4, 5, 6


def split_address(data: bytes) -> List[str]:
    """Truncate garbage padding, decode and split on every delimiter"""
    text = _decode(truncate_address_garbage(data))
    return [_normalize(p) for p in text.split(FIELD_DELIMITER)]


def parse_address(data: bytes) -> AddressParts:
    parts = split_address(data)
    logger.debug(f"Address parts ({len(parts)}): {parts}")

    def part(i: int) -> str:
        return parts[i] if i < len(parts) else ""

    tambol_idx, amphur_idx, province_idx = select_division_indices(parts)
    logger.debug(f"Address layout: {'8-part' if tambol_idx == 5 else '7-part'}")

    return AddressParts(
        house_no=part(0),
        village_no=part(1),
        lane=part(2),
        road=part(3),
        tambol=strip_division_garbage(part(tambol_idx)),
        amphur=strip_division_garbage(part(amphur_idx)),
        province=strip_division_garbage(part(province_idx)),
    )


# =============================================================================
# Photo
# =============================================================================

def combine_photo_chunks(chunks: Sequence[bytes]) -> str:
    """Concatenate chunks in request order and base64 encode"""
    return base64.b64encode(b"".join(bytes(c) for c in chunks)).decode("ascii")


def inspect_photo(data: bytes) -> Optional[Tuple[str, Tuple[int, int]]]:
    """Return (format, size) if the photo decodes, None otherwise"""
    if not PILLOW_AVAILABLE or not data:
        return None
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.format, img.size
    except (OSError, SyntaxError, ValueError) as e:
        logger.warning(f"Photo could not be decoded ({len(data)} bytes): {e}")
        return None


# =============================================================================
# Dates
# =============================================================================

def normalize_expiry(date_str: str) -> str:
    """Lifetime cards carry 99999999 as expiry"""
    if date_str == LIFETIME_EXPIRY:
        return LIFETIME_EXPIRY_DATE
    return date_str


def format_date_slash(date_str: str) -> str:
    """YYYYMMDD -> YYYY/MM/DD"""
    if len(date_str) != 8:
        return date_str
    return f"{date_str[0:4]}/{date_str[4:6]}/{date_str[6:8]}"


def format_thai_date(date_str: str) -> str:
    """YYYYMMDD (Buddhist Era) -> '15 ม.ค. 2533'"""
    if len(date_str) != 8 or not date_str.isdigit():
        return date_str
    month = int(date_str[4:6])
    if not 1 <= month <= 12:
        return date_str
    return f"{int(date_str[6:8])} {THAI_MONTHS[month - 1]} {date_str[0:4]}"


def be_to_gregorian(date_str: str) -> str:
    """Convert a Buddhist Era YYYYMMDD date to the Gregorian year"""
    if len(date_str) != 8 or not date_str.isdigit():
        return date_str
    return f"{int(date_str[0:4]) - BUDDHIST_ERA_OFFSET:04d}{date_str[4:]}"


# =============================================================================
# Masking for logs
# =============================================================================

def mask_citizen_id(citizen_id: str) -> str:
    """Show only the last 4 digits"""
    if len(citizen_id) <= 4:
        return "*" * len(citizen_id)
    return "*" * (len(citizen_id) - 4) + citizen_id[-4:]


def mask_address(province: str) -> str:
    """Only the province is safe to log"""
    if not province:
        return "[masked address]"
    return f"[hidden] {province}"
