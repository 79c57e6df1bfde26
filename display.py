"""
Console display channel.

Shows a masked summary of each distributed card event in the log, standing
in for a desktop front end.
"""

import asyncio
import logging

from readers.decoder import format_thai_date, mask_citizen_id
from readers.models import CardEvent

logger = logging.getLogger(__name__)

SEX_LABELS = {"1": "ชาย", "2": "หญิง"}


def summarize(event: CardEvent) -> str:
    if not event.is_inserted:
        return f"Card removed ({event.reader or 'reader'}) - waiting for card..."
    record = event.record
    parts = [
        mask_citizen_id(record.citizen_id),
        record.full_name_th or "-",
        f"เกิด {format_thai_date(record.birthday)}",
        SEX_LABELS.get(record.sex, record.sex or "-"),
        f"จ.{record.addr_province}" if record.addr_province else "[masked address]",
    ]
    return "Card read: " + " | ".join(parts)


async def run_display(queue: asyncio.Queue):
    """Consume distributed events forever"""
    logger.info("Display channel ready - waiting for card...")
    while True:
        event = await queue.get()
        try:
            logger.info(summarize(event))
        finally:
            queue.task_done()
