"""
Card event pipeline: validation gate, output shaping, field encryption and
publication to WebSocket subscribers and the display channel.

    CardMonitor --events--> CardEventProcessor --json--> EventHub
                                               \\--event--> display queue
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional, Tuple

from readers.decoder import format_date_slash, mask_citizen_id
from readers.models import CardEvent, IdentityRecord
from security.audit import AuditLogger
from security.exceptions import CryptoError
from security.validation import has_security_threat, validate_record

logger = logging.getLogger(__name__)

MODE_READ = "readsmartcard"
MODE_REMOVED = "removedsmartcard"
PHOTO_FIELD = "PhotoRaw"


def record_fields(record: IdentityRecord) -> List[Tuple[str, str]]:
    """(original output name, value) in message order; photo excluded"""
    return [
        ("Citizenid", record.citizen_id),
        ("Th_Prefix", record.th_prefix),
        ("Th_Firstname", record.th_firstname),
        ("Th_Middlename", record.th_middlename),
        ("Th_Lastname", record.th_lastname),
        ("En_Prefix", record.en_prefix),
        ("En_Firstname", record.en_firstname),
        ("En_Middlename", record.en_middlename),
        ("En_Lastname", record.en_lastname),
        ("full_name_en", record.full_name_en),
        ("Birthday", format_date_slash(record.birthday)),
        ("Sex", record.sex),
        ("card_issuer", record.issuer),
        ("issue_date", format_date_slash(record.issue_date)),
        ("expire_date", format_date_slash(record.expire_date)),
        ("Address", record.address),
        ("addrHouseNo", record.addr_house_no),
        ("addrVillageNo", record.addr_village_no),
        ("addrLane", record.addr_lane),
        ("addrRoad", record.addr_road),
        ("addrTambol", record.addr_tambol),
        ("addrAmphur", record.addr_amphur),
        ("addrProvince", record.addr_province),
        ("nationality", record.nationality),
    ]


def apply_output_config(record: IdentityRecord, output) -> List[Tuple[str, str, str]]:
    """
    Filter and rename fields per the output config.

    Returns (output name, original name, value) triples.
    """
    shaped = []
    for name, value in record_fields(record):
        if output.is_field_enabled(name):
            shaped.append((output.get_field_name(name), name, value))

    if output.include_photo and output.is_field_enabled(PHOTO_FIELD):
        shaped.append((output.get_field_name(PHOTO_FIELD), PHOTO_FIELD, record.photo))
    return shaped


class CardEventProcessor:
    """Turns CardEvents into subscriber messages"""

    def __init__(self, output_config, security_config, audit: AuditLogger, hub,
                 crypto=None, display_queue: Optional[asyncio.Queue] = None):
        self.output = output_config
        self.security = security_config
        self.audit = audit
        self.hub = hub
        self.crypto = crypto
        self.display_queue = display_queue

    def build_message(self, event: CardEvent) -> Optional[str]:
        """JSON message for an event, or None when the record must not leave the process"""
        if not event.is_inserted:
            return json.dumps({"mode": MODE_REMOVED}, ensure_ascii=False)

        record = event.record
        findings = validate_record(record)
        for finding in findings:
            self.audit.log_validation_failure(
                finding.field, finding.category.value, finding.message, finding.is_security_threat
            )
        if has_security_threat(findings):
            logger.error("Card data contains security threats. Payload rejected.")
            return None
        if findings:
            logger.warning(f"Card data has {len(findings)} validation warning(s)")

        payload = self._encrypt_fields(apply_output_config(record, self.output))
        if payload is None:
            return None

        self.audit.log_card_read(mask_citizen_id(record.citizen_id), event.reader)
        return json.dumps({"mode": MODE_READ, **payload}, ensure_ascii=False)

    def _encrypt_fields(self, fields: List[Tuple[str, str, str]]) -> Optional[Dict[str, str]]:
        """Encrypt selected fields; any failure drops the whole record"""
        payload = {}
        for output_name, original_name, value in fields:
            if not self.security.should_encrypt_field(output_name, original_name):
                payload[output_name] = value
                continue
            try:
                if self.crypto is None:
                    raise CryptoError("Encryption enabled but no crypto service configured")
                payload[output_name] = self.crypto.encrypt_to_base64(value)
                logger.debug(f"Encrypted field: {output_name}")
            except CryptoError as e:
                logger.error(f"Failed to encrypt field '{output_name}': {e}. Payload rejected.")
                self.audit.log_security_error(
                    f"Encryption failed for field '{output_name}', record dropped",
                    action="encryption_failure",
                )
                return None
        return payload

    async def handle(self, event: CardEvent):
        message = self.build_message(event)
        if message is None:
            return
        if not event.is_inserted:
            self.audit.log_card_removed(event.reader)

        delivered = self.hub.publish(message)
        logger.debug(f"Event {event.type.value} published to {delivered} subscriber(s)")

        if self.display_queue is not None:
            try:
                self.display_queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Display queue full, event not shown")

    async def run(self, events: asyncio.Queue):
        """Dispatch monitor events forever"""
        while True:
            event = await events.get()
            try:
                await self.handle(event)
            except Exception as e:
                logger.exception(f"Failed to process card event: {e}")
            finally:
                events.task_done()
