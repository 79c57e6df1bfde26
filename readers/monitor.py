"""
Card presence monitor.

Keeps a PC/SC session alive and watches every reader:

    NO_SESSION --establish--> HEALTHY --enumeration/status error--> NO_SESSION

A reader going Absent -> Present runs the read sequence; Present -> Absent
emits a removal. Events are put on an asyncio.Queue for the dispatcher.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from functools import partial
from typing import Optional, Set

from .decoder import mask_citizen_id
from .exceptions import CardReaderError, TransportError
from .models import CardEvent, IdentityRecord
from .thai_id import ThaiIDCardReader

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    NO_SESSION = "no_session"
    HEALTHY = "healthy"


class CardMonitor:
    """Polling loop driving the transport and the Thai ID reader"""

    def __init__(self, transport, card_config, monitor_config, events: asyncio.Queue,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.transport = transport
        self.card_config = card_config
        self.config = monitor_config
        self.events = events
        # One worker thread: PC/SC handles stay on the thread that made them
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="pcsc")
        self.present: Set[str] = set()
        self.state = MonitorState.NO_SESSION

    async def run_blocking(self, func, *args):
        """Run a blocking PC/SC call in the worker thread"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args))

    async def _sleep_ms(self, ms: int):
        await asyncio.sleep(ms / 1000)

    async def _reset_session(self, reason: str):
        logger.warning(f"PC/SC session reset: {reason}")
        await self.run_blocking(self.transport.release)
        self.state = MonitorState.NO_SESSION
        self.present.clear()

    async def run(self):
        """Poll forever; hardware problems are retried, never raised"""
        logger.info("Card monitor started")
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                logger.exception(f"Unexpected card monitor error: {e}")
                await self._reset_session("unexpected error")
                await self._sleep_ms(self.config.session_retry_delay_ms)

    async def poll_once(self):
        """One monitor cycle"""
        if self.state is MonitorState.NO_SESSION:
            try:
                await self.run_blocking(self.transport.establish)
            except TransportError as e:
                logger.debug(f"{e}, retrying...")
                await self._sleep_ms(self.config.session_retry_delay_ms)
                return
            logger.info("PC/SC context established")
            self.state = MonitorState.HEALTHY

        # Listing readers doubles as the liveness probe for a silently dead context
        try:
            readers = await self.run_blocking(self.transport.list_readers)
        except TransportError as e:
            logger.error(f"Failed to list readers: {e}")
            await self._reset_session("reader enumeration failed")
            await self._sleep_ms(self.config.session_retry_delay_ms)
            return

        if not readers:
            if self.present:
                await self._handle_removals(set())
            await self._sleep_ms(self.config.no_reader_delay_ms)
            return

        try:
            presence = await self.run_blocking(
                self.transport.get_presence, readers, self.config.status_timeout_ms
            )
        except TransportError as e:
            logger.error(str(e))
            await self._reset_session("status change failed")
            await self._sleep_ms(self.config.poll_interval_ms)
            return

        if presence is not None:
            await self._handle_removals({name for name, present in presence.items() if present})
            for name, present in presence.items():
                if present and name not in self.present:
                    await self._handle_insertion(name)

        await self._sleep_ms(self.config.poll_interval_ms)

    async def _handle_removals(self, present_now: Set[str]):
        for name in sorted(self.present - present_now):
            logger.info(f"Card removed from reader: {name}")
            self.present.discard(name)
            await self.events.put(CardEvent.removed(name))

    async def _handle_insertion(self, reader: str):
        logger.info(f"Card detected in reader: {reader}")
        record = await self.read_card(reader)
        if record is None:
            logger.error(
                f"Failed to read card after {self.card_config.retry_attempts} connection attempts "
                f"with {self.config.read_attempts} read retries each. Will retry on next poll cycle."
            )
            return
        # Marked present only after a good read so failures are retried without re-insertion
        self.present.add(reader)
        await self.events.put(CardEvent.inserted(record, reader))

    async def read_card(self, reader: str) -> Optional[IdentityRecord]:
        """Connect with retries, then read with retries"""
        attempts = self.card_config.retry_attempts
        for attempt in range(1, attempts + 1):
            await self._sleep_ms(self.card_config.card_settle_delay_ms)

            try:
                session = await self.run_blocking(self.transport.connect, reader)
            except CardReaderError as e:
                logger.warning(f"Failed to connect to card (attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    await self._sleep_ms(self.card_config.retry_delay_ms)
                continue

            logger.info(f"Card connected in reader: {reader} (attempt {attempt})")
            try:
                record = await self._read_with_retries(session)
            finally:
                await self.run_blocking(session.disconnect)
            if record is not None:
                return record
        return None

    async def _read_with_retries(self, session) -> Optional[IdentityRecord]:
        card_reader = ThaiIDCardReader(session, self.card_config)
        tries = self.config.read_attempts
        for read_attempt in range(1, tries + 1):
            try:
                record = await self.run_blocking(card_reader.read_identity)
            except CardReaderError as e:
                logger.warning(f"Failed to read card data (read attempt {read_attempt}/{tries}): {e}")
                if read_attempt < tries:
                    await self._sleep_ms(self.config.read_retry_delay_ms)
                continue
            logger.info(
                f"Successfully read Thai ID: {mask_citizen_id(record.citizen_id)} "
                f"(read attempt {read_attempt}/{tries})"
            )
            return record
        return None
