"""
Identifier allocation.

Counter-based employee/intern codes are numbered by ``SequenceAllocator``:
a per-scope asyncio lock serialises callers in this process and an atomic
increment-and-get on the ``sequence_counters`` row serialises every process
sharing the database. Each allocation runs in its own short transaction, so a
number is never handed out twice even if the caller later fails to persist its
record (that number is simply skipped).

Random certificate and offer letter codes are not allocated here; their pure
generators live in ``idsyncro.utils.codes`` and the helpers below retry them
against the table's uniqueness constraint.
"""

import asyncio
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, TypeVar

from sqlalchemy import exc, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from idsyncro.core.config import get_settings
from idsyncro.core.constants import COUNTER_MAX, EMPLOYEE_TYPE_CODES
from idsyncro.core.database import AsyncSessionLocal
from idsyncro.core.errors import CapacityExceededError, ConflictError, ValidationError
from idsyncro.core.logging import get_logger
from idsyncro.models.counter import SequenceCounter
from idsyncro.models.employee import Employee
from idsyncro.utils.codes import employee_type_code, format_employee_code, parse_employee_code
from idsyncro.utils.time import utc_now, year_suffix

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=SQLModel)

Scope = Tuple[str, str]

# Same-batch duplicates are redrawn; timestamp-based generators need a few
# draws before the clock moves on.
MAX_REDRAWS = 1000

# Keeps IN (...) lookups under SQLite's bound-parameter limit
LOOKUP_CHUNK_SIZE = 500


class SequenceAllocator:
    """Allocates SWT-YY-TYPE-NNNN codes, strictly increasing per (type, year)."""

    def __init__(
        self,
        sessionmaker: async_sessionmaker,
        prefix: Optional[str] = None,
        limit: int = COUNTER_MAX
    ):
        self._sessionmaker = sessionmaker
        self.prefix = prefix or get_settings().id_prefix
        self.limit = limit
        self._locks: Dict[Scope, asyncio.Lock] = {}

    def _lock_for(self, scope: Scope) -> asyncio.Lock:
        lock = self._locks.get(scope)
        if lock is None:
            lock = self._locks[scope] = asyncio.Lock()
        return lock

    async def allocate(self, employee_type: str, year: Optional[str] = None) -> str:
        """
        Allocate the next code for (employee_type, year).

        Args:
            employee_type: "employee" or "intern"
            year: Two-digit year; defaults to the current UTC year

        Returns:
            Code such as SWT-25-EMP-0042

        Raises:
            ValidationError: unknown type or malformed year
            CapacityExceededError: the 4-digit space for the scope is used up
        """
        artifact_type = (employee_type or "").strip().lower()
        if artifact_type not in EMPLOYEE_TYPE_CODES:
            raise ValidationError(f"Unknown employee type '{employee_type}'")
        year = year or year_suffix()
        if len(year) != 2 or not year.isdigit():
            raise ValidationError(f"Year must be two digits, got '{year}'")

        scope = (artifact_type, year)
        async with self._lock_for(scope):
            async with self._sessionmaker() as session:
                async with session.begin():
                    number = await self._next_value(session, artifact_type, year)

        code = format_employee_code(self.prefix, year, artifact_type, number)
        logger.info("Allocated %s for scope %s/%s", code, artifact_type, year)
        return code

    async def current_value(self, employee_type: str, year: str) -> int:
        """Highest number issued so far for the scope (0 if none)."""
        async with self._sessionmaker() as session:
            counter = await session.get(SequenceCounter, (employee_type, year))
            return counter.value if counter else 0

    async def _next_value(self, session: AsyncSession, artifact_type: str, year: str) -> int:
        existing = await session.get(SequenceCounter, (artifact_type, year))
        seed = existing.value if existing else await self._highest_issued(session, artifact_type, year)
        if seed >= self.limit:
            self._exhausted(artifact_type, year)

        dialect = session.bind.dialect.name
        if dialect in ("sqlite", "postgresql"):
            value = await self._upsert_increment(session, dialect, artifact_type, year, seed)
        else:
            value = await self._locked_increment(session, artifact_type, year, seed)

        if value is None:
            self._exhausted(artifact_type, year)
        return value

    async def _upsert_increment(
        self,
        session: AsyncSession,
        dialect: str,
        artifact_type: str,
        year: str,
        seed: int
    ) -> Optional[int]:
        """Atomic increment-and-get; returns None when the counter is at the limit."""
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        table = SequenceCounter.__table__
        statement = insert(table).values(
            artifact_type=artifact_type,
            year=year,
            value=seed + 1,
            updated_at=utc_now()
        )
        statement = statement.on_conflict_do_update(
            index_elements=[table.c.artifact_type, table.c.year],
            set_={"value": table.c.value + 1, "updated_at": utc_now()},
            where=table.c.value < self.limit
        ).returning(table.c.value)

        result = await session.execute(statement)
        return result.scalar()

    async def _locked_increment(
        self,
        session: AsyncSession,
        artifact_type: str,
        year: str,
        seed: int
    ) -> Optional[int]:
        """Row-lock fallback for engines without upsert support."""
        table = SequenceCounter.__table__
        result = await session.execute(
            select(table.c.value)
            .where(table.c.artifact_type == artifact_type, table.c.year == year)
            .with_for_update()
        )
        current = result.scalar()
        if current is None:
            session.add(SequenceCounter(artifact_type=artifact_type, year=year, value=seed + 1))
            await session.flush()
            return seed + 1
        if current >= self.limit:
            return None
        await session.execute(
            update(table)
            .where(table.c.artifact_type == artifact_type, table.c.year == year)
            .values(value=current + 1, updated_at=utc_now())
        )
        return current + 1

    async def _highest_issued(self, session: AsyncSession, artifact_type: str, year: str) -> int:
        """Largest suffix already stored in employees for the scope."""
        pattern = f"{self.prefix}-{year}-{employee_type_code(artifact_type)}-%"
        result = await session.execute(
            select(func.max(Employee.employee_id)).where(Employee.employee_id.like(pattern))
        )
        highest = result.scalar()
        parsed = parse_employee_code(highest) if highest else None
        return parsed[3] if parsed else 0

    def _exhausted(self, artifact_type: str, year: str) -> None:
        logger.error("Identifier capacity exhausted for %s/%s", artifact_type, year)
        raise CapacityExceededError(artifact_type, year, self.limit)


def _is_unique_violation(error: exc.IntegrityError, column: str) -> bool:
    message = str(error.orig).lower()
    return column.lower() in message and ("unique" in message or "duplicate" in message)


async def insert_with_retry(
    session: AsyncSession,
    build: Callable[[], RecordT],
    column: str,
    max_attempts: Optional[int] = None
) -> RecordT:
    """
    Insert a record whose identifier is random, regenerating on collision.

    ``build`` is called once per attempt and must draw a fresh identifier.
    A collision rolls the session back, so callers add companion rows (audit
    entries) only after this returns.

    Raises:
        ConflictError: every attempt collided on ``column``
    """
    max_attempts = max_attempts or get_settings().code_retry_limit
    for attempt in range(1, max_attempts + 1):
        record = build()
        session.add(record)
        try:
            await session.commit()
        except exc.IntegrityError as e:
            await session.rollback()
            if not _is_unique_violation(e, column):
                raise
            logger.warning(
                "Identifier collision on %s (attempt %d/%d), regenerating",
                column, attempt, max_attempts
            )
            continue
        await session.refresh(record)
        return record

    raise ConflictError(f"Could not issue a unique {column} after {max_attempts} attempts")


async def _stored_values(session: AsyncSession, column, values: Sequence[str]) -> Set[str]:
    """Subset of ``values`` already present in ``column``, queried in chunks."""
    stored: Set[str] = set()
    for start in range(0, len(values), LOOKUP_CHUNK_SIZE):
        chunk = values[start:start + LOOKUP_CHUNK_SIZE]
        result = await session.execute(select(column).where(column.in_(chunk)))
        stored.update(result.scalars().all())
    return stored


async def reserve_unique_codes(
    session: AsyncSession,
    column,
    generators: Sequence[Callable[[], str]],
    max_attempts: Optional[int] = None
) -> List[str]:
    """
    Draw one identifier per generator, distinct from each other and from
    every value already stored in ``column``.

    Collisions are regenerated for up to ``max_attempts`` rounds; the table's
    uniqueness constraint remains the final guard at commit time.

    Raises:
        ConflictError: collisions persisted through every round
    """
    max_attempts = max_attempts or get_settings().code_retry_limit
    codes: List[str] = [""] * len(generators)
    seen: Set[str] = set()
    pending = list(range(len(generators)))

    for attempt in range(1, max_attempts + 1):
        for index in pending:
            code = generators[index]()
            redraws = 0
            while code in seen:
                redraws += 1
                if redraws > MAX_REDRAWS:
                    raise ConflictError("Identifier generator keeps repeating itself")
                code = generators[index]()
            seen.add(code)
            codes[index] = code

        taken = await _stored_values(session, column, [codes[i] for i in pending])
        pending = [index for index in pending if codes[index] in taken]
        if not pending:
            return codes
        logger.warning(
            "%d identifier(s) already issued (round %d/%d), regenerating",
            len(pending), attempt, max_attempts
        )

    raise ConflictError(
        f"Could not reserve {len(generators)} unique identifiers after {max_attempts} rounds"
    )


@lru_cache()
def get_allocator() -> SequenceAllocator:
    """Process-wide allocator, so every request shares the same scope locks."""
    return SequenceAllocator(AsyncSessionLocal)
