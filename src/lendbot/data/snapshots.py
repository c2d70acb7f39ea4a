"""Append-only store for reserve snapshots.

Reads are window-bounded by row count, not by time: callers get at most
MINT_WINDOW rows per (protocol, mint) and PROTOCOL_WINDOW rows per protocol,
whatever the sampling frequency. Do not assume a fixed time span.
"""

from decimal import Decimal

from lendbot.data.database import LendingDatabase
from lendbot.logging import get_logger
from lendbot.models import ReserveSnapshot

logger = get_logger(__name__)

MINT_WINDOW = 10
PROTOCOL_WINDOW = 20

_COLUMNS = (
    "protocol, coin_name, mint_address, apy, lend_liquidity, borrow_liquidity, "
    "utilization_rate, borrow_cap, supply_cap, ltv, update_time"
)


def _row_to_snapshot(row: tuple) -> ReserveSnapshot:
    return ReserveSnapshot(
        protocol=row[0],
        coin_name=row[1],
        mint_address=row[2],
        apy=Decimal(row[3]),
        lend_liquidity=Decimal(row[4]),
        borrow_liquidity=Decimal(row[5]),
        utilization_rate=Decimal(row[6]),
        borrow_cap=Decimal(row[7]),
        supply_cap=Decimal(row[8]),
        ltv=Decimal(row[9]),
        update_time=row[10],
    )


class SnapshotStore:
    """Reserve time series over the reserve_snapshots table.

    Identical observations are stored as separate rows; nothing is merged.
    """

    def __init__(self, database: LendingDatabase) -> None:
        self._database = database

    async def put(self, snapshot: ReserveSnapshot) -> None:
        """Append one snapshot row. No dedup, no merge."""
        await self._database.db.execute(
            f"INSERT INTO reserve_snapshots ({_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                snapshot.protocol,
                snapshot.coin_name,
                snapshot.mint_address,
                str(snapshot.apy),
                str(snapshot.lend_liquidity),
                str(snapshot.borrow_liquidity),
                str(snapshot.utilization_rate),
                str(snapshot.borrow_cap),
                str(snapshot.supply_cap),
                str(snapshot.ltv),
                snapshot.update_time,
            ),
        )
        await self._database.db.commit()

    async def get_by_mint(self, protocol: str, mint_address: str) -> list[ReserveSnapshot]:
        """Return up to MINT_WINDOW most recent snapshots, newest first."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM reserve_snapshots "
            "WHERE protocol = ? AND mint_address = ? "
            "ORDER BY update_time DESC, id DESC LIMIT ?",
            (protocol, mint_address, MINT_WINDOW),
        )
        rows = await cursor.fetchall()
        return [_row_to_snapshot(row) for row in rows]

    async def get_by_protocol(self, protocol: str) -> list[ReserveSnapshot]:
        """Return up to PROTOCOL_WINDOW most recent snapshots across all mints, newest first."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM reserve_snapshots "
            "WHERE protocol = ? ORDER BY update_time DESC, id DESC LIMIT ?",
            (protocol, PROTOCOL_WINDOW),
        )
        rows = await cursor.fetchall()
        return [_row_to_snapshot(row) for row in rows]

    async def get_latest(self, protocol: str, mint_address: str) -> ReserveSnapshot | None:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM reserve_snapshots "
            "WHERE protocol = ? AND mint_address = ? "
            "ORDER BY update_time DESC, id DESC LIMIT 1",
            (protocol, mint_address),
        )
        row = await cursor.fetchone()
        return _row_to_snapshot(row) if row is not None else None

    async def delete_by_mint(self, mint_address: str) -> int:
        """Remove every snapshot of a mint. Administrative; returns rows deleted."""
        cursor = await self._database.db.execute(
            "DELETE FROM reserve_snapshots WHERE mint_address = ?",
            (mint_address,),
        )
        await self._database.db.commit()
        logger.info("snapshots_deleted_by_mint", mint=mint_address, deleted=cursor.rowcount)
        return cursor.rowcount

    async def purge_older_than(self, cutoff_ms: int) -> int:
        """Delete snapshots with update_time before cutoff_ms. Returns rows deleted."""
        cursor = await self._database.db.execute(
            "DELETE FROM reserve_snapshots WHERE update_time < ?",
            (cutoff_ms,),
        )
        await self._database.db.commit()
        if cursor.rowcount:
            logger.info("snapshots_purged", cutoff_ms=cutoff_ms, deleted=cursor.rowcount)
        return cursor.rowcount

    async def count(self) -> int:
        cursor = await self._database.db.execute("SELECT COUNT(*) FROM reserve_snapshots")
        return (await cursor.fetchone())[0]
