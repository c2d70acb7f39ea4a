"""Current-position store: one row per (wallet_address, mint_address).

upsert() writes whatever baseline it is given. The reconciler decides
whether a baseline is kept or replaced.
"""

from decimal import Decimal

from lendbot.data.database import LendingDatabase
from lendbot.logging import get_logger
from lendbot.models import WalletPosition

logger = get_logger(__name__)

_COLUMNS = (
    "wallet_address, protocol_name, coin_name, mint_address, amount, "
    "start_apy, start_time, current_position, latest_apy"
)

_UPSERT_SQL = f"""
INSERT INTO current_positions ({_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (wallet_address, mint_address) DO UPDATE SET
    protocol_name = excluded.protocol_name,
    coin_name = excluded.coin_name,
    amount = excluded.amount,
    start_apy = excluded.start_apy,
    start_time = excluded.start_time,
    current_position = excluded.current_position,
    latest_apy = excluded.latest_apy
"""


def _row_to_position(row: tuple) -> WalletPosition:
    return WalletPosition(
        wallet_address=row[0],
        protocol_name=row[1],
        coin_name=row[2],
        mint_address=row[3],
        amount=Decimal(row[4]),
        start_apy=Decimal(row[5]),
        start_time=row[6],
        current_position=Decimal(row[7]),
        latest_apy=Decimal(row[8]),
    )


class PositionStore:
    """Async store over the current_positions table."""

    def __init__(self, database: LendingDatabase) -> None:
        self._database = database

    async def upsert(self, position: WalletPosition) -> None:
        """Insert a position or overwrite the existing row for (wallet, mint).

        A uniqueness conflict is resolved by SQLite as an update and is never
        raised to the caller.
        """
        await self._database.db.execute(
            _UPSERT_SQL,
            (
                position.wallet_address,
                position.protocol_name,
                position.coin_name,
                position.mint_address,
                str(position.amount),
                str(position.start_apy),
                position.start_time,
                str(position.current_position),
                str(position.latest_apy),
            ),
        )
        await self._database.db.commit()
        logger.debug(
            "position_upserted",
            wallet=position.wallet_address,
            mint=position.mint_address,
            current=str(position.current_position),
        )

    async def get_active(self, wallet_address: str) -> list[WalletPosition]:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM current_positions WHERE wallet_address = ? ORDER BY id",
            (wallet_address,),
        )
        rows = await cursor.fetchall()
        return [_row_to_position(row) for row in rows]

    async def get_one(
        self, wallet_address: str, mint_address: str, protocol_name: str
    ) -> WalletPosition | None:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM current_positions "
            "WHERE wallet_address = ? AND mint_address = ? AND protocol_name = ? LIMIT 1",
            (wallet_address, mint_address, protocol_name),
        )
        row = await cursor.fetchone()
        return _row_to_position(row) if row is not None else None

    async def remove(self, wallet_address: str, mint_address: str) -> None:
        await self._database.db.execute(
            "DELETE FROM current_positions WHERE wallet_address = ? AND mint_address = ?",
            (wallet_address, mint_address),
        )
        await self._database.db.commit()
        logger.info("position_removed", wallet=wallet_address, mint=mint_address)

    async def remove_all(self) -> None:
        await self._database.db.execute("DELETE FROM current_positions")
        await self._database.db.commit()
        logger.info("positions_cleared")
