"""Shared fixtures: a scripted Thai ID card and a fake PC/SC transport."""

from typing import Dict, List, Optional, Tuple

import pytest

from config import CardConfig, MonitorConfig
from readers.exceptions import CardReadError, TransportError
from readers.models import IdentityRecord

VALID_CITIZEN_ID = "1101700207366"

TH_NAME = "นาย#สมชาย##ใจดี"
EN_NAME = "Mr.#Somchai##Jaidee"
ADDRESS_7 = "123#หมู่ที่ 5#ซอยสุขใจ#ถนนสุขุมวิท#ตำบลบางนา#อำเภอบางนา#จังหวัดกรุงเทพมหานคร"

Response = Tuple[List[int], int, int]


class FakeCard:
    """
    Answers transmit() from a table keyed by APDU.

    Each command holds a list of responses; the last one repeats.
    Unknown commands answer 6A 82 (file not found).
    """

    def __init__(self):
        self.responses: Dict[Tuple[int, ...], List[Response]] = {}
        self.sent: List[List[int]] = []
        self.disconnects = 0

    def add(self, apdu: List[int], data: bytes = b"", sw: Tuple[int, int] = (0x90, 0x00)):
        self.responses.setdefault(tuple(apdu), []).append((list(data), sw[0], sw[1]))
        return self

    def transmit(self, apdu: List[int]) -> Response:
        self.sent.append(list(apdu))
        queue = self.responses.get(tuple(apdu))
        if not queue:
            return [], 0x6A, 0x82
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def disconnect(self):
        self.disconnects += 1


def field_apdu(card_config: CardConfig, name: str) -> List[int]:
    return card_config.get_field(name).to_bytes()


def make_thai_card(card_config: CardConfig, th_name: str = TH_NAME, address: str = ADDRESS_7,
                   citizen_id: str = VALID_CITIZEN_ID, photo_chunks: int = 2) -> FakeCard:
    card = FakeCard()
    card.add(card_config.select_apdu_bytes(), sw=(0x61, 0x0A))
    card.add([0x00, 0xC0, 0x00, 0x00, 0x0A], b"\x00" * 10)

    def text(name, value):
        card.add(field_apdu(card_config, name), value.encode("cp874"))

    text("citizen_id", citizen_id)
    text("full_name_th", th_name)
    text("full_name_en", EN_NAME)
    text("date_of_birth", "25330115")
    text("gender", "1")
    text("card_issuer", "กรุงเทพมหานคร")
    text("issue_date", "25600101")
    text("expire_date", "25700114")
    # Garbage after the address must be cut off
    card.add(field_apdu(card_config, "address"), address.encode("cp874") + b"\x00\x90\x01")

    for i, chunk in enumerate(card_config.photo_chunk_bytes()[:photo_chunks]):
        card.add(chunk, bytes([i]) * 4)
    return card


class FakeTransport:
    """In-memory stand-in for PcscTransport"""

    def __init__(self, card: Optional[FakeCard] = None, readers=("Reader 0",)):
        self.card = card
        self.readers = list(readers)
        self.inserted = set()
        self.hcontext = None
        self.establish_failures = 0
        self.connect_failures = 0
        self.list_error = False
        self.status_error = False
        self.timeout = False
        self.connects = 0
        self.releases = 0

    def establish(self):
        if self.establish_failures:
            self.establish_failures -= 1
            raise TransportError("Failed to establish PC/SC context: service not available")
        self.hcontext = object()

    def release(self):
        self.releases += 1
        self.hcontext = None

    def list_readers(self):
        if self.list_error:
            raise TransportError("Failed to list readers: service stopped")
        return list(self.readers)

    def get_presence(self, readers, timeout_ms):
        if self.status_error:
            raise TransportError("Get status change error: service stopped")
        if self.timeout:
            return None
        return {name: name in self.inserted for name in readers}

    def connect(self, reader):
        self.connects += 1
        if self.connect_failures:
            self.connect_failures -= 1
            raise CardReadError("Failed to connect to card: card is unpowered")
        return self.card


@pytest.fixture
def card_config():
    return CardConfig(retry_delay_ms=0, card_settle_delay_ms=0)


@pytest.fixture
def monitor_config():
    return MonitorConfig(
        session_retry_delay_ms=0,
        status_timeout_ms=0,
        no_reader_delay_ms=0,
        poll_interval_ms=0,
        read_retry_delay_ms=0,
    )


@pytest.fixture
def thai_card(card_config):
    return make_thai_card(card_config)


@pytest.fixture
def record():
    return IdentityRecord(
        citizen_id=VALID_CITIZEN_ID,
        th_prefix="นาย",
        th_firstname="สมชาย",
        th_lastname="ใจดี",
        en_prefix="Mr.",
        en_firstname="Somchai",
        en_lastname="Jaidee",
        full_name_en="Mr. Somchai Jaidee",
        birthday="25330115",
        sex="1",
        issuer="กรุงเทพมหานคร",
        issue_date="25600101",
        expire_date="25700114",
        address="123 หมู่ที่ 5 ถนนสุขุมวิท ซอยสุขใจ ตำบลบางนา อำเภอบางนา จังหวัดกรุงเทพมหานคร",
        addr_house_no="123",
        addr_village_no="หมู่ที่ 5",
        addr_lane="ซอยสุขใจ",
        addr_road="ถนนสุขุมวิท",
        addr_tambol="ตำบลบางนา",
        addr_amphur="อำเภอบางนา",
        addr_province="จังหวัดกรุงเทพมหานคร",
        photo="AAAA",
    )
