"""Console display channel."""

import asyncio
import logging

from display import run_display, summarize
from readers.models import CardEvent


def test_summary_masks_citizen_id(record):
    text = summarize(CardEvent.inserted(record, "Reader 0"))

    assert "*********7366" in text
    assert record.citizen_id not in text
    assert "15 ม.ค. 2533" in text
    assert "ชาย" in text
    assert "จ.จังหวัดกรุงเทพมหานคร" in text
    assert record.addr_road not in text


def test_removal_summary():
    assert "Card removed" in summarize(CardEvent.removed("Reader 0"))


async def test_run_display_logs_events(record, caplog):
    caplog.set_level(logging.INFO, logger="display")
    queue = asyncio.Queue()
    task = asyncio.create_task(run_display(queue))

    await queue.put(CardEvent.inserted(record))
    await asyncio.wait_for(queue.join(), timeout=1)
    task.cancel()

    assert "Card read: *********7366" in caplog.text
