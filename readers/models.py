"""
Data produced by a card read.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class IdentityRecord:
    """Snapshot of one successful Thai ID card read"""
    citizen_id: str
    th_prefix: str = ""
    th_firstname: str = ""
    th_middlename: str = ""
    th_lastname: str = ""
    en_prefix: str = ""
    en_firstname: str = ""
    en_middlename: str = ""
    en_lastname: str = ""
    full_name_en: str = ""
    birthday: str = ""          # YYYYMMDD, Buddhist Era as stored on the card
    sex: str = ""               # "1" = male, "2" = female
    issuer: str = ""
    issue_date: str = ""        # YYYYMMDD, Buddhist Era
    expire_date: str = ""       # YYYYMMDD, Buddhist Era (lifetime cards normalised)
    address: str = ""           # combined address
    addr_house_no: str = ""
    addr_village_no: str = ""
    addr_lane: str = ""
    addr_road: str = ""
    addr_tambol: str = ""       # subdistrict
    addr_amphur: str = ""       # district
    addr_province: str = ""
    photo: str = ""             # base64 JPEG
    nationality: str = "THA"

    @property
    def full_name_th(self) -> str:
        parts = [self.th_prefix, self.th_firstname, self.th_middlename, self.th_lastname]
        return " ".join(p for p in parts if p)


class CardEventType(Enum):
    INSERTED = "inserted"
    REMOVED = "removed"


@dataclass(frozen=True)
class CardEvent:
    """Card inserted (with its record) or removed"""
    type: CardEventType
    reader: str = ""
    record: Optional[IdentityRecord] = None

    @classmethod
    def inserted(cls, record: IdentityRecord, reader: str = "") -> "CardEvent":
        return cls(CardEventType.INSERTED, reader, record)

    @classmethod
    def removed(cls, reader: str = "") -> "CardEvent":
        return cls(CardEventType.REMOVED, reader)

    @property
    def is_inserted(self) -> bool:
        return self.type is CardEventType.INSERTED
