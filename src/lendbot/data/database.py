"""Async SQLite database manager for the lending monitor.

Uses aiosqlite for non-blocking database operations with WAL mode
for concurrent read/write performance. One connection is shared by every
scheduler job; row-level conflicts are resolved by SQLite itself
(INSERT ... ON CONFLICT), never by application locks.
"""

import os
from typing import Self

import aiosqlite

from lendbot.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS reserve_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    protocol TEXT NOT NULL,
    coin_name TEXT NOT NULL,
    mint_address TEXT NOT NULL,
    apy TEXT NOT NULL,
    lend_liquidity TEXT NOT NULL,
    borrow_liquidity TEXT NOT NULL,
    utilization_rate TEXT NOT NULL,
    borrow_cap TEXT NOT NULL,
    supply_cap TEXT NOT NULL,
    ltv TEXT NOT NULL,
    update_time INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS current_positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    wallet_address TEXT NOT NULL,
    protocol_name TEXT NOT NULL,
    coin_name TEXT NOT NULL,
    mint_address TEXT NOT NULL,
    amount TEXT NOT NULL,
    start_apy TEXT NOT NULL,
    start_time INTEGER NOT NULL,
    current_position TEXT NOT NULL,
    latest_apy TEXT NOT NULL DEFAULT '0',
    UNIQUE (wallet_address, mint_address)
);

CREATE TABLE IF NOT EXISTS protocol_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    protocol_name TEXT NOT NULL,
    rule TEXT NOT NULL,
    confidence INTEGER NOT NULL,
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS protocol_predicted_apy (
    protocol_name TEXT NOT NULL,
    mint_address TEXT NOT NULL,
    coin_name TEXT NOT NULL,
    predicted_apy TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    PRIMARY KEY (protocol_name, mint_address)
);

CREATE TABLE IF NOT EXISTS user_wallets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    telegram_user_id TEXT NOT NULL DEFAULT '',
    wallet_address TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
"""

_CREATE_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_snapshots_protocol_mint_ts
    ON reserve_snapshots(protocol, mint_address, update_time);

CREATE INDEX IF NOT EXISTS idx_snapshots_protocol_ts
    ON reserve_snapshots(protocol, update_time);

CREATE INDEX IF NOT EXISTS idx_rules_protocol
    ON protocol_rules(protocol_name, id);

CREATE INDEX IF NOT EXISTS idx_wallets_user
    ON user_wallets(user_id);
"""


MEMORY_PATH = ":memory:"


class LendingDatabase:
    """Owns the single aiosqlite connection shared by every store.

    The schema is created on connect and stamped with SCHEMA_VERSION the
    first time a file is opened. File-backed databases run in WAL mode so
    API reads do not block the scheduler's writes.

        async with LendingDatabase(":memory:") as database:
            store = SnapshotStore(database)
    """

    def __init__(self, db_path: str = "data/lendbot.db", busy_timeout_ms: int = 5000) -> None:
        self._db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """The open connection; RuntimeError until connect() has run."""
        if self._connection is None:
            raise RuntimeError(f"LendingDatabase({self._db_path!r}) is not open")
        return self._connection

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        if self._connection is not None:
            return

        in_memory = self._db_path == MEMORY_PATH
        if not in_memory:
            parent = os.path.dirname(self._db_path)
            if parent:
                os.makedirs(parent, exist_ok=True)

        connection = await aiosqlite.connect(self._db_path)
        try:
            if not in_memory:
                await connection.execute("PRAGMA journal_mode=WAL")
            await connection.execute("PRAGMA synchronous=NORMAL")
            await connection.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
            version = await self._init_schema(connection)
        except Exception:
            await connection.close()
            raise

        self._connection = connection
        logger.info("lending_db_connected", db_path=self._db_path, schema_version=version)

    async def close(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        await connection.close()
        logger.info("lending_db_closed", db_path=self._db_path)

    @staticmethod
    async def _init_schema(connection: aiosqlite.Connection) -> int:
        """Create missing tables and indexes; return the stored schema version."""
        await connection.executescript(_CREATE_TABLES_SQL + _CREATE_INDEXES_SQL)

        async with connection.execute("SELECT MAX(version) FROM schema_version") as cursor:
            row = await cursor.fetchone()
        version = row[0] if row is not None else None

        if version is None:
            await connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            version = SCHEMA_VERSION
            logger.info("schema_version_set", version=version)
        elif version != SCHEMA_VERSION:
            logger.warning(
                "schema_version_mismatch", stored=version, expected=SCHEMA_VERSION
            )

        await connection.commit()
        return version

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
