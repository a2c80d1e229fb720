"""
Document Number Generator

Turns a series' numbering state and a date into a document number:

    prefix "INV/{YYYY}/{MM}/", 2024-03-05, counter 7, padding 5
    -> "INV/2024/03/00007"

The generator itself never writes anything. ``NumberingService`` reserves
the number by writing the new counter back with a compare-and-set, inside
the caller's unit of work.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from models.settings import DocumentSeries, NumberingConfig
from services.errors import NumberGenerationExhausted, PersistenceError
from services.settings_service import SettingsService, numbering_config

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10000

UniquenessCheck = Callable[[str], Awaitable[bool]]


class GeneratedNumber(BaseModel):
    number: str
    next_counter_value: int
    # Stored counter the reservation replaced; set by NumberingService.reserve
    counter_before: Optional[int] = None


def format_prefix(template: str, now: datetime) -> str:
    """Substitute {YYYY}, {MM} and {DD} in a prefix template"""
    return (
        template
        .replace("{YYYY}", f"{now.year:04d}")
        .replace("{MM}", f"{now.month:02d}")
        .replace("{DD}", f"{now.day:02d}")
    )


def format_number(config: NumberingConfig, now: datetime, counter: Optional[int] = None) -> str:
    """Formatted prefix followed by the zero-padded counter"""
    value = config.next_number if counter is None else counter
    return f"{format_prefix(config.prefix, now)}{str(value).zfill(config.padding)}"


async def generate_document_number(
    config: NumberingConfig,
    now: datetime,
    is_unique: Optional[UniquenessCheck] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
) -> GeneratedNumber:
    """
    Pick the next document number for a series.

    Without ``is_unique`` the number is purely sequential. With it, each
    candidate is probed and the counter advances past taken numbers until
    a free one is found or ``max_attempts`` candidates have been rejected.

    ``next_counter_value`` is always the last tried counter + 1.
    """
    counter = config.next_number

    if is_unique is None:
        return GeneratedNumber(
            number=format_number(config, now, counter),
            next_counter_value=counter + 1
        )

    for _ in range(max_attempts):
        candidate = format_number(config, now, counter)
        if await is_unique(candidate):
            return GeneratedNumber(number=candidate, next_counter_value=counter + 1)
        logger.debug(f"Document number {candidate} already taken, trying next")
        counter += 1

    raise NumberGenerationExhausted(
        f"No free document number after {max_attempts} attempts "
        f"(prefix={config.prefix!r}, started at {config.next_number})"
    )


class NumberingService:
    """
    Reserves document numbers against the per-user counter row.

    The counter is written with a compare-and-set on the value that was read,
    so two concurrent creations can never both consume the same counter.
    The loser re-reads and tries again.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        conflict_retries: int = 50
    ):
        self.db = db
        self.settings = SettingsService(db)
        self.max_attempts = max_attempts
        self.conflict_retries = conflict_retries

    async def preview(self, user_id: str, series: DocumentSeries, now: datetime) -> str:
        settings_doc = await self.settings.get_or_create(user_id)
        return format_number(numbering_config(settings_doc, series), now)

    async def reserve(
        self,
        user_id: str,
        series: DocumentSeries,
        now: datetime,
        is_unique: Optional[UniquenessCheck] = None,
        session=None
    ) -> GeneratedNumber:
        counter_field = f"{series.value}_next_num"

        for attempt in range(1, self.conflict_retries + 1):
            settings_doc = await self.settings.get_or_create(user_id, session=session)
            config = numbering_config(settings_doc, series)

            try:
                generated = await generate_document_number(
                    config, now, is_unique=is_unique, max_attempts=self.max_attempts
                )
            except NumberGenerationExhausted as e:
                logger.critical(f"[NUMBERING] {series.value} series exhausted for user {user_id}: {e}")
                raise

            result = await self.db.company_settings.update_one(
                {"user_id": user_id, counter_field: settings_doc.get(counter_field)},
                {"$set": {counter_field: generated.next_counter_value, "updated_at": now}},
                session=session
            )
            if result.modified_count == 1:
                generated.counter_before = settings_doc.get(counter_field)
                logger.info(
                    f"[NUMBERING] Reserved {generated.number} for user {user_id}, "
                    f"{counter_field} -> {generated.next_counter_value}"
                )
                return generated

            logger.warning(
                f"[NUMBERING] Counter {counter_field} moved under us for user {user_id} "
                f"(attempt {attempt}/{self.conflict_retries}), retrying"
            )

        raise PersistenceError(
            f"Could not reserve a {series.value} number after {self.conflict_retries} concurrent conflicts"
        )

    async def release(self, user_id: str, series: DocumentSeries, generated: GeneratedNumber) -> bool:
        """
        Hand a reserved number back after the document using it failed.

        Only used outside transactions. The counter is put back only while it
        still holds the value this reservation wrote; if another reservation
        has moved it on since, the number stays burnt and a gap remains.
        """
        counter_field = f"{series.value}_next_num"
        result = await self.db.company_settings.update_one(
            {"user_id": user_id, counter_field: generated.next_counter_value},
            {"$set": {counter_field: generated.counter_before}}
        )
        if result.modified_count == 1:
            logger.info(f"[NUMBERING] Released {generated.number} for user {user_id}")
            return True

        logger.warning(
            f"[NUMBERING] Could not release {generated.number} for user {user_id}; "
            f"{counter_field} moved on, leaving a gap"
        )
        return False
