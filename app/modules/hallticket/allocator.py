"""
Roll Number Allocator - per-class sequential roll numbers within an examination

Roll numbers look like "2026-10A-007": a class prefix followed by a sequence
zero-padded to three digits. Past 999 the width simply grows ("2026-10A-1000").

The first time a prefix is seen the allocator reads the stored high-water
mark; after that it counts in memory. Two concurrent batches for the same
prefix can therefore hand out the same number; the (tenant, examination,
roll_number) unique constraint catches that and the issuer calls `reseed`.
"""

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PersistenceError
from app.models.hall_ticket import HallTicket

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 3


def format_roll_number(class_prefix: str, sequence: int) -> str:
    return f"{class_prefix}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(roll_number: str, class_prefix: str) -> Optional[int]:
    """Numeric suffix of `roll_number` after `class_prefix`, or None"""
    if not roll_number.startswith(class_prefix):
        return None
    suffix = roll_number[len(class_prefix):]
    if not (suffix.isascii() and suffix.isdigit()):
        return None
    return int(suffix)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RollNumberAllocator:
    """Hands out roll number sequences for one examination of one tenant"""

    def __init__(self, db: AsyncSession, tenant_id: str, examination_id: str):
        self.db = db
        self.tenant_id = tenant_id
        self.examination_id = examination_id
        self._counters: Dict[str, int] = {}

    async def load_high_water_mark(self, class_prefix: str) -> int:
        """
        Highest stored sequence for `class_prefix`, 0 when there is none.

        LIKE also matches longer sibling prefixes (class "10" vs "10-A"), so
        only roll numbers whose remainder after the prefix is all digits
        count. Sequences are compared as integers, keeping "...-1000" above
        "...-999".
        """
        query = select(HallTicket.roll_number).where(
            HallTicket.tenant_id == self.tenant_id,
            HallTicket.examination_id == self.examination_id,
            HallTicket.roll_number.like(f"{_escape_like(class_prefix)}%", escape="\\"),
        )
        try:
            roll_numbers = (await self.db.execute(query)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read roll numbers: {e}", operation="load_high_water_mark")

        high_water_mark = 0
        foreign = 0
        for roll_number in roll_numbers:
            sequence = parse_sequence(roll_number, class_prefix)
            if sequence is None:
                foreign += 1
                continue
            high_water_mark = max(high_water_mark, sequence)

        if foreign:
            logger.info(
                f"[RollNumberAllocator] Ignored {foreign} roll numbers under '{class_prefix}' "
                f"without a numeric suffix in exam {self.examination_id}"
            )
        return high_water_mark

    async def allocate(self, class_prefix: str) -> int:
        """Next sequence for `class_prefix`; storage is read once per prefix"""
        if class_prefix not in self._counters:
            self._counters[class_prefix] = await self.load_high_water_mark(class_prefix)
        self._counters[class_prefix] += 1
        return self._counters[class_prefix]

    async def next_roll_number(self, class_prefix: str) -> str:
        return format_roll_number(class_prefix, await self.allocate(class_prefix))

    async def reseed(self, class_prefix: str) -> None:
        """Re-read storage after a collision; never moves the counter backwards"""
        stored = await self.load_high_water_mark(class_prefix)
        current = self._counters.get(class_prefix, 0)
        self._counters[class_prefix] = max(stored, current)
        logger.info(
            f"[RollNumberAllocator] Reseeded '{class_prefix}' at {self._counters[class_prefix]} "
            f"(stored {stored}, in-memory {current})"
        )

    def peek(self, class_prefix: str) -> Optional[int]:
        return self._counters.get(class_prefix)
