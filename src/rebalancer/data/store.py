"""Typed persistence for price samples and trades.

Provides the PriceHistoryStore interface consumed by the cycle, a SQLite
implementation and an in-memory implementation for tests and dry runs.

CRITICAL: All monetary values stored as TEXT in SQLite, restored as Decimal on read.
Price samples are append-only; nothing here updates or deletes them.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from rebalancer.data.database import RebalancerDatabase
from rebalancer.logging import get_logger
from rebalancer.models import Clock, PricePoint, Trade, utc_now

logger = get_logger(__name__)

#: Look-back window for statistics.
WINDOW = timedelta(hours=24)


def _to_ms(timestamp: datetime) -> int:
    return int(timestamp.timestamp() * 1000)


def _from_ms(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


class PriceHistoryStore(ABC):
    """Append-only storage for price samples and trade records."""

    @abstractmethod
    async def save_price_samples(self, samples: list[PricePoint]) -> None:
        ...

    @abstractmethod
    async def fetch_price_samples_24h(self, token: str) -> list[PricePoint]:
        """Return samples with ``token_in == token`` from the last 24 hours, oldest first."""
        ...

    @abstractmethod
    async def save_trades(self, trades: list[Trade]) -> None:
        ...


class SqlitePriceHistoryStore(PriceHistoryStore):
    """aiosqlite-backed store.

    Usage:
        async with RebalancerDatabase("data/rebalancer.db") as database:
            store = SqlitePriceHistoryStore(database)
            await store.save_price_samples(points)
    """

    def __init__(self, database: RebalancerDatabase, clock: Clock = utc_now) -> None:
        self._database = database
        self._clock = clock

    async def save_price_samples(self, samples: list[PricePoint]) -> None:
        if not samples:
            return

        data = [
            (
                _to_ms(p.timestamp),
                p.token_in,
                p.token_out,
                str(p.amount_in),
                str(p.amount_out),
                str(p.fee),
            )
            for p in samples
        ]
        await self._database.db.executemany(
            "INSERT INTO price_samples "
            "(timestamp_ms, token_in, token_out, amount_in, amount_out, fee) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            data,
        )
        await self._database.db.commit()
        logger.debug("saved_price_samples", count=len(samples))

    async def fetch_price_samples_24h(self, token: str) -> list[PricePoint]:
        since_ms = _to_ms(self._clock() - WINDOW)
        cursor = await self._database.db.execute(
            "SELECT timestamp_ms, token_in, token_out, amount_in, amount_out, fee "
            "FROM price_samples WHERE token_in = ? AND timestamp_ms >= ? "
            "ORDER BY timestamp_ms ASC, id ASC",
            (token, since_ms),
        )
        rows = await cursor.fetchall()
        samples = []
        for row in rows:
            amount_in = Decimal(row[3])
            amount_out = Decimal(row[4])
            samples.append(
                PricePoint(
                    timestamp=_from_ms(row[0]),
                    token_in=row[1],
                    token_out=row[2],
                    amount_in=amount_in,
                    amount_out=amount_out,
                    price=amount_out / amount_in,
                    fee=Decimal(row[5]),
                )
            )
        return samples

    async def save_trades(self, trades: list[Trade]) -> None:
        if not trades:
            return

        data = [
            (
                t.swap_id,
                _to_ms(t.timestamp),
                t.token_in,
                str(t.amount_in),
                t.token_out,
                str(t.amount_out),
                1 if t.was_successful else 0,
            )
            for t in trades
        ]
        await self._database.db.executemany(
            "INSERT INTO trades "
            "(swap_id, timestamp_ms, token_in, amount_in, token_out, amount_out, was_successful) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            data,
        )
        await self._database.db.commit()
        logger.debug("saved_trades", count=len(trades))

    async def get_trades(self) -> list[Trade]:
        """Return all recorded trades, oldest first."""
        cursor = await self._database.db.execute(
            "SELECT timestamp_ms, swap_id, token_in, amount_in, token_out, amount_out, "
            "was_successful FROM trades ORDER BY timestamp_ms ASC"
        )
        rows = await cursor.fetchall()
        return [
            Trade(
                timestamp=_from_ms(row[0]),
                swap_id=row[1],
                token_in=row[2],
                amount_in=Decimal(row[3]),
                token_out=row[4],
                amount_out=Decimal(row[5]),
                was_successful=bool(row[6]),
            )
            for row in rows
        ]


class InMemoryPriceHistoryStore(PriceHistoryStore):
    """Deterministic list-backed store with the same 24h window rule."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self.price_samples: list[PricePoint] = []
        self.trades: list[Trade] = []

    async def save_price_samples(self, samples: list[PricePoint]) -> None:
        self.price_samples.extend(samples)

    async def fetch_price_samples_24h(self, token: str) -> list[PricePoint]:
        since = self._clock() - WINDOW
        window = [
            p for p in self.price_samples if p.token_in == token and p.timestamp >= since
        ]
        return sorted(window, key=lambda p: p.timestamp)

    async def save_trades(self, trades: list[Trade]) -> None:
        self.trades.extend(trades)
