"""Registry of user-linked wallets.

A user may link many wallets. (user_id, wallet_address) is kept unique by
link(), not by a table constraint.
"""

from lendbot.data.database import LendingDatabase
from lendbot.logging import get_logger
from lendbot.models import UserWallet

logger = get_logger(__name__)

_COLUMNS = "user_id, telegram_user_id, wallet_address, created_at"


def _row_to_wallet(row: tuple) -> UserWallet:
    return UserWallet(
        user_id=row[0],
        telegram_user_id=row[1],
        wallet_address=row[2],
        created_at=row[3],
    )


class WalletStore:
    """Async store over the user_wallets table."""

    def __init__(self, database: LendingDatabase) -> None:
        self._database = database

    async def get_all(self) -> list[UserWallet]:
        """Every linked wallet, in registration order."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM user_wallets ORDER BY id"
        )
        return [_row_to_wallet(row) for row in await cursor.fetchall()]

    async def link(self, wallet: UserWallet) -> bool:
        """Link a wallet to a user. Returns False if the user already linked it."""
        existing = await self.get_by_user(wallet.user_id)
        if any(w.wallet_address == wallet.wallet_address for w in existing):
            logger.info("wallet_already_linked", user_id=wallet.user_id, wallet=wallet.wallet_address)
            return False

        await self._database.db.execute(
            f"INSERT INTO user_wallets ({_COLUMNS}) VALUES (?, ?, ?, ?)",
            (wallet.user_id, wallet.telegram_user_id, wallet.wallet_address, wallet.created_at),
        )
        await self._database.db.commit()
        logger.info("wallet_linked", user_id=wallet.user_id, wallet=wallet.wallet_address)
        return True

    async def get_by_user(self, user_id: str) -> list[UserWallet]:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM user_wallets WHERE user_id = ? ORDER BY id",
            (user_id,),
        )
        return [_row_to_wallet(row) for row in await cursor.fetchall()]

    async def get_by_telegram_user(self, telegram_user_id: str) -> list[UserWallet]:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM user_wallets WHERE telegram_user_id = ? ORDER BY id",
            (telegram_user_id,),
        )
        return [_row_to_wallet(row) for row in await cursor.fetchall()]

    async def get_telegram_id(self, wallet_address: str) -> str | None:
        cursor = await self._database.db.execute(
            "SELECT telegram_user_id FROM user_wallets WHERE wallet_address = ? LIMIT 1",
            (wallet_address,),
        )
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def unlink(self, user_id: str, wallet_address: str) -> None:
        await self._database.db.execute(
            "DELETE FROM user_wallets WHERE user_id = ? AND wallet_address = ?",
            (user_id, wallet_address),
        )
        await self._database.db.commit()
        logger.info("wallet_unlinked", user_id=user_id, wallet=wallet_address)

    async def remove_all(self) -> None:
        await self._database.db.execute("DELETE FROM user_wallets")
        await self._database.db.commit()
