"""
Input validation for decoded card data.

Every check returns a ValidationFinding or None; nothing here raises.
SECURITY findings mean the record must not be distributed.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from readers.decoder import LIFETIME_EXPIRY_DATE, be_to_gregorian
from readers.models import IdentityRecord

CITIZEN_ID_LENGTH = 13
MAX_NAME_LENGTH = 200
MAX_ADDRESS_LENGTH = 500
SUSPICIOUS_CHARS = frozenset("<>{}[]\\|;&$")

_DATE_RE = re.compile(r"^(\d{4})-?(\d{2})-?(\d{2})$")


class ValidationCategory(Enum):
    FORMAT = "Format"
    INTEGRITY = "Integrity"
    SECURITY = "Security"


@dataclass(frozen=True)
class ValidationFinding:
    field: str
    category: ValidationCategory
    message: str

    @property
    def is_security_threat(self) -> bool:
        return self.category is ValidationCategory.SECURITY

    def __str__(self):
        return f"{self.field}: {self.category.value} error: {self.message}"


def citizen_id_check_digit(digits: str) -> int:
    """Check digit for the first 12 digits: weights 13..2, mod 11"""
    total = sum(int(d) * (13 - i) for i, d in enumerate(digits[:12]))
    return (11 - total % 11) % 10


def _is_ascii_digits(value: str) -> bool:
    return value.isascii() and value.isdigit()


def validate_citizen_id(citizen_id: str, field: str = "Citizen ID") -> Optional[ValidationFinding]:
    clean = citizen_id.strip()
    if len(clean) != CITIZEN_ID_LENGTH:
        return ValidationFinding(
            field, ValidationCategory.FORMAT,
            f"Invalid length: expected {CITIZEN_ID_LENGTH} digits, got {len(clean)}",
        )
    if not _is_ascii_digits(clean):
        return ValidationFinding(field, ValidationCategory.FORMAT, "Contains non-digit characters")
    if citizen_id_check_digit(clean) != int(clean[12]):
        return ValidationFinding(field, ValidationCategory.INTEGRITY, "Invalid checksum")
    return None


def validate_date(date: str, field: str = "Date") -> Optional[ValidationFinding]:
    """YYYYMMDD or YYYY-MM-DD, year 1900-2100"""
    match = _DATE_RE.match(date)
    if not match or not date.isascii():
        return ValidationFinding(
            field, ValidationCategory.FORMAT,
            "Invalid date format: expected YYYYMMDD or YYYY-MM-DD",
        )
    year, month, day = (int(g) for g in match.groups())
    if not 1900 <= year <= 2100:
        return ValidationFinding(field, ValidationCategory.FORMAT, f"Invalid year: {year}")
    if not 1 <= month <= 12:
        return ValidationFinding(field, ValidationCategory.FORMAT, f"Invalid month: {month}")
    if not 1 <= day <= 31:
        return ValidationFinding(field, ValidationCategory.FORMAT, f"Invalid day: {day}")
    return None


def _validate_text(value: str, field: str, kind: str, max_length: int) -> Optional[ValidationFinding]:
    clean = value.strip()
    if not clean:
        return ValidationFinding(field, ValidationCategory.FORMAT, f"{kind} cannot be empty")
    if len(clean) > max_length:
        return ValidationFinding(
            field, ValidationCategory.FORMAT, f"{kind} too long: {len(clean)} characters"
        )
    if any(ch in SUSPICIOUS_CHARS for ch in clean):
        return ValidationFinding(field, ValidationCategory.SECURITY, "Contains suspicious characters")
    return None


def validate_name(name: str, field: str = "Name") -> Optional[ValidationFinding]:
    return _validate_text(name, field, "Name", MAX_NAME_LENGTH)


def validate_address(address: str, field: str = "Address") -> Optional[ValidationFinding]:
    return _validate_text(address, field, "Address", MAX_ADDRESS_LENGTH)


def validate_sex(sex: str, field: str = "Gender") -> Optional[ValidationFinding]:
    clean = sex.strip()
    if clean not in ("1", "2"):
        return ValidationFinding(
            field, ValidationCategory.FORMAT,
            f"Invalid gender code: expected '1' or '2', got '{clean}'",
        )
    return None


def validate_record(record: IdentityRecord) -> List[ValidationFinding]:
    """Run every check over a decoded record and collect the findings"""
    checks = [
        validate_citizen_id(record.citizen_id),
        validate_date(be_to_gregorian(record.birthday), "Birth date"),
        validate_date(be_to_gregorian(record.issue_date), "Issue date"),
        None if record.expire_date == LIFETIME_EXPIRY_DATE
        else validate_date(be_to_gregorian(record.expire_date), "Expire date"),
        validate_sex(record.sex),
        validate_name(record.full_name_th, "Thai name"),
        validate_name(record.full_name_en, "English name"),
        validate_name(record.issuer, "Issuer") if record.issuer.strip() else None,
        validate_address(record.address),
    ]
    return [finding for finding in checks if finding is not None]


def has_security_threat(findings: List[ValidationFinding]) -> bool:
    return any(f.is_security_threat for f in findings)
