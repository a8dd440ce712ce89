"""Inventory consumption ledger.

Logging a print debits one or more spools, prices each debit from the spool's
cost per gram, and writes a print record with one line item per spool, all in
a single transaction. Spools left at or below the low-stock threshold are
reported to the notifier once the transaction has committed.

Stock is guarded by a conditional decrement
(``remaining_weight = remaining_weight - w WHERE remaining_weight >= w``)
so two concurrent prints can never both spend the same grams. Decrements are
applied in ascending spool id order so multi-spool prints cannot deadlock
each other.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from backend.app.core import database
from backend.app.core.config import settings
from backend.app.core.errors import InsufficientStock, InvalidInput, NotFound, TransientStoreFailure
from backend.app.models.print_record import PrintLineItem, PrintRecord
from backend.app.models.spool import Spool
from backend.app.models.user import User
from backend.app.services.low_stock_notifier import LowStockNotifier, SpoolDescriptor, low_stock_notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PrintItem:
    spool_id: int
    weight_used: float


@dataclass(slots=True)
class RecordedPrint:
    print_record: PrintRecord
    created: bool  # False when an idempotency key replayed an earlier print


@dataclass(slots=True)
class _StagedLine:
    spool: Spool
    weight_used: float
    cost: float


def _validate_weight(value, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidInput(f"{field} must be a number")
    return float(value)


def _validate_print_request(print_name: str | None, items) -> tuple[str, list[PrintItem]]:
    name = (print_name or "").strip()
    if not name:
        raise InvalidInput("Print name is required")
    if not items:
        raise InvalidInput("At least one spool must be used by a print")

    validated = []
    for item in items:
        spool_id = item.spool_id
        if isinstance(spool_id, bool) or not isinstance(spool_id, int):
            raise InvalidInput("spool_id must be an integer")
        weight = _validate_weight(item.weight_used, "weight_used")
        if weight <= 0:
            raise InvalidInput(f"weight_used must be greater than 0 (spool {spool_id})")
        validated.append(PrintItem(spool_id=spool_id, weight_used=weight))
    return name, validated


def _log_abandoned_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        logger.info("Ledger transaction committed after the caller disconnected")
    else:
        logger.info("Ledger transaction rolled back after the caller disconnected: %s", exc)


class Ledger:
    """Applies print consumption and manual corrections to spool stock."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        notifier: LowStockNotifier | None = None,
        threshold: float | None = None,
        timeout: float | None = None,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._threshold = threshold
        self._timeout = timeout

    @property
    def threshold(self) -> float:
        return self._threshold if self._threshold is not None else settings.low_filament_threshold

    @property
    def timeout(self) -> float:
        return self._timeout if self._timeout is not None else settings.ledger_timeout_seconds

    @property
    def notifier(self) -> LowStockNotifier:
        return self._notifier or low_stock_notifier

    def _session(self) -> AsyncSession:
        factory = self._session_factory or database.async_session
        return factory()

    def is_low(self, remaining_weight: float) -> bool:
        return remaining_weight <= self.threshold

    # ── Transaction plumbing ────────────────────────────────────────────────

    async def _with_timeout(self, coro):
        try:
            async with asyncio.timeout(self.timeout):
                return await coro
        except TimeoutError as e:
            logger.warning("Ledger transaction timed out after %.1fs", self.timeout)
            raise TransientStoreFailure("Timed out waiting for the inventory store, please retry") from e
        except OperationalError as e:
            logger.warning("Ledger transaction failed in the store: %s", e.orig or e)
            raise TransientStoreFailure("The inventory store is busy or unavailable, please retry") from e

    async def _commit_then_notify(self, coro):
        result = await self._with_timeout(coro)
        _, low_spools = result
        self._notify(low_spools)
        return result

    async def _run(self, coro):
        """Run a transaction and its alerts to completion even if the caller is cancelled.

        A disconnecting client cancels the request handler. The transaction
        runs in its own task behind a shield, so it either commits or rolls
        back in full instead of being interrupted halfway. Alerts for a
        committed transaction are dispatched by that same task.
        """
        task = asyncio.ensure_future(self._commit_then_notify(coro))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                task.add_done_callback(_log_abandoned_result)
            raise

    def _notify(self, low_spools: list[tuple[SpoolDescriptor, float]]) -> None:
        for descriptor, remaining in low_spools:
            try:
                self.notifier.dispatch(descriptor, remaining)
            except Exception:
                logger.exception("Could not dispatch low-stock alert for spool %d", descriptor.id)

    # ── Prints ──────────────────────────────────────────────────────────────

    async def record_print(
        self,
        user_id: int,
        print_name: str,
        items: list[PrintItem],
        idempotency_key: str | None = None,
    ) -> RecordedPrint:
        """Consume stock for a print and record it with its line items.

        Raises:
            InvalidInput: Empty name or item list, or a non-positive weight
            NotFound: A spool does not exist or belongs to another user
            InsufficientStock: A spool holds less than the weight requested
            TransientStoreFailure: Store timeout or lock/connection failure
        """
        name, validated = _validate_print_request(print_name, items)
        key = (idempotency_key or "").strip() or None

        if key:
            existing = await self._find_print_by_key(user_id, key)
            if existing:
                logger.info("Replaying print %d for user %d (idempotency key)", existing.id, user_id)
                return RecordedPrint(existing, created=False)

        try:
            record, _ = await self._run(self._record_print_tx(user_id, name, validated, key))
        except IntegrityError:
            # Lost a race with a concurrent submission using the same key
            existing = await self._find_print_by_key(user_id, key) if key else None
            if existing is None:
                raise
            logger.info("Concurrent duplicate of print %d for user %d resolved by idempotency key", existing.id, user_id)
            return RecordedPrint(existing, created=False)
        except (NotFound, InsufficientStock) as e:
            logger.info("Rejected print %r for user %d: %s", name, user_id, e.message)
            raise

        logger.info(
            "Recorded print %d %r for user %d: %d spool(s), %.1fg, cost %.2f",
            record.id,
            record.name,
            user_id,
            len(record.line_items),
            record.weight_used,
            record.cost,
        )
        return RecordedPrint(record, created=True)

    async def _record_print_tx(
        self,
        user_id: int,
        name: str,
        items: list[PrintItem],
        idempotency_key: str | None,
    ) -> tuple[PrintRecord, list[tuple[SpoolDescriptor, float]]]:
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(
                    select(Spool).where(
                        Spool.id.in_({item.spool_id for item in items}),
                        Spool.user_id == user_id,
                    )
                )
                spools = {spool.id: spool for spool in result.scalars().all()}

                # Validate in caller order so the first bad item is the one reported
                available = {spool_id: spool.remaining_weight for spool_id, spool in spools.items()}
                staged: list[_StagedLine] = []
                for item in items:
                    spool = spools.get(item.spool_id)
                    if spool is None:
                        raise NotFound(f"Spool {item.spool_id} not found")
                    if item.weight_used > available[spool.id]:
                        raise InsufficientStock(
                            f"Not enough filament remaining in {spool.brand} {spool.color_name}",
                            spool_id=spool.id,
                        )
                    available[spool.id] -= item.weight_used
                    cost = spool.cost_per_gram * item.weight_used
                    staged.append(_StagedLine(spool=spool, weight_used=item.weight_used, cost=cost))

                demand: dict[int, float] = defaultdict(float)
                for line in staged:
                    demand[line.spool.id] += line.weight_used

                # Authoritative check: another transaction may have spent the stock since the read
                for spool_id in sorted(demand):
                    weight = demand[spool_id]
                    update_result = await session.execute(
                        update(Spool)
                        .where(
                            Spool.id == spool_id,
                            Spool.user_id == user_id,
                            Spool.remaining_weight >= weight,
                        )
                        .values(remaining_weight=Spool.remaining_weight - weight)
                        .execution_options(synchronize_session=False)
                    )
                    if update_result.rowcount != 1:
                        still_there = await session.scalar(
                            select(Spool.id).where(Spool.id == spool_id, Spool.user_id == user_id)
                        )
                        if still_there is None:
                            raise NotFound(f"Spool {spool_id} not found")
                        spool = spools[spool_id]
                        raise InsufficientStock(
                            f"Not enough filament remaining in {spool.brand} {spool.color_name}",
                            spool_id=spool_id,
                        )

                primary = staged[0].spool
                record = PrintRecord(
                    user_id=user_id,
                    name=name,
                    spool_id=primary.id,
                    material=primary.material,
                    brand=primary.brand,
                    color_name=primary.color_name,
                    color=primary.color,
                    weight_used=sum(line.weight_used for line in staged),
                    cost=sum(line.cost for line in staged),
                    idempotency_key=idempotency_key,
                    line_items=[
                        PrintLineItem(
                            spool_id=line.spool.id,
                            material=line.spool.material,
                            brand=line.spool.brand,
                            color_name=line.spool.color_name,
                            color=line.spool.color,
                            weight_used=line.weight_used,
                            cost=line.cost,
                        )
                        for line in staged
                    ],
                )
                session.add(record)
                await session.flush()
                await session.refresh(record, attribute_names=["created_at"])

                remaining_rows = await session.execute(
                    select(Spool.id, Spool.remaining_weight).where(Spool.id.in_(demand.keys()))
                )
                remaining = {row.id: row.remaining_weight for row in remaining_rows}
                low_spools = []
                if any(self.is_low(weight) for weight in remaining.values()):
                    owner_email = await session.scalar(select(User.email).where(User.id == user_id))
                    low_spools = [
                        (SpoolDescriptor.from_spool(spools[spool_id], owner_email), remaining[spool_id])
                        for spool_id in demand
                        if self.is_low(remaining[spool_id])
                    ]

        return record, low_spools

    async def _find_print_by_key(self, user_id: int, idempotency_key: str) -> PrintRecord | None:
        async with self._session() as session:
            result = await session.execute(
                select(PrintRecord)
                .options(selectinload(PrintRecord.line_items))
                .where(PrintRecord.user_id == user_id, PrintRecord.idempotency_key == idempotency_key)
            )
            return result.scalar_one_or_none()

    # ── Manual corrections ──────────────────────────────────────────────────

    async def adjust_remaining(self, user_id: int, spool_id: int, new_remaining: float) -> Spool:
        """Overwrite a spool's remaining weight, e.g. after weighing it.

        Raises:
            InvalidInput: Weight below 0 or above the spool's total weight
            NotFound: The spool does not exist or belongs to another user
            TransientStoreFailure: Store timeout or lock/connection failure
        """
        weight = _validate_weight(new_remaining, "remaining_weight")
        if weight < 0:
            raise InvalidInput("remaining_weight cannot be negative")

        spool, _ = await self._run(self._adjust_remaining_tx(user_id, spool_id, weight))

        logger.info("Adjusted spool %d for user %d to %sg remaining", spool.id, user_id, f"{weight:g}")
        return spool

    async def _adjust_remaining_tx(
        self, user_id: int, spool_id: int, weight: float
    ) -> tuple[Spool, list[tuple[SpoolDescriptor, float]]]:
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(
                    update(Spool)
                    .where(
                        Spool.id == spool_id,
                        Spool.user_id == user_id,
                        Spool.total_weight >= weight,
                    )
                    .values(remaining_weight=weight)
                    .execution_options(synchronize_session=False)
                )
                spool = await session.scalar(
                    select(Spool)
                    .where(Spool.id == spool_id, Spool.user_id == user_id)
                    .execution_options(populate_existing=True)
                )
                if spool is None:
                    raise NotFound(f"Spool {spool_id} not found")
                if result.rowcount != 1:
                    raise InvalidInput(
                        f"remaining_weight cannot exceed the spool's total weight ({spool.total_weight:g}g)"
                    )

                low_spools = []
                if self.is_low(weight):
                    owner_email = await session.scalar(select(User.email).where(User.id == user_id))
                    low_spools.append((SpoolDescriptor.from_spool(spool, owner_email), weight))

        return spool, low_spools


# Global instance
ledger = Ledger()


def get_ledger() -> Ledger:
    """FastAPI dependency returning the process-wide ledger."""
    return ledger
