"""Append-only store for generated protocol rules.

Rules accumulate; they are pruned only at read time, by the 10-row cap or by
a confidence floor. Deduplication is left to whoever generates them.
"""

from lendbot.data.database import LendingDatabase
from lendbot.logging import get_logger
from lendbot.models import ProtocolRule

logger = get_logger(__name__)

RULE_WINDOW = 10


class RuleStore:
    """Async store over the protocol_rules table."""

    def __init__(self, database: LendingDatabase) -> None:
        self._database = database

    async def save(self, rule: ProtocolRule) -> None:
        await self.save_many([rule])

    async def save_many(self, rules: list[ProtocolRule]) -> int:
        """Append rules in one commit. Returns the number written."""
        if not rules:
            return 0
        await self._database.db.executemany(
            "INSERT INTO protocol_rules (protocol_name, rule, confidence, created_at) "
            "VALUES (?, ?, ?, ?)",
            [(r.protocol_name, r.rule, r.confidence, r.created_at) for r in rules],
        )
        await self._database.db.commit()
        logger.debug("rules_saved", count=len(rules))
        return len(rules)

    async def get_by_protocol(
        self, protocol_name: str, min_confidence: int | None = None
    ) -> list[ProtocolRule]:
        """Return rules for a protocol, newest first.

        Without min_confidence the result is capped at RULE_WINDOW rows.
        With min_confidence every rule at or above the floor is returned.
        """
        if min_confidence is None:
            cursor = await self._database.db.execute(
                "SELECT protocol_name, rule, confidence, created_at FROM protocol_rules "
                "WHERE protocol_name = ? ORDER BY id DESC LIMIT ?",
                (protocol_name, RULE_WINDOW),
            )
        else:
            cursor = await self._database.db.execute(
                "SELECT protocol_name, rule, confidence, created_at FROM protocol_rules "
                "WHERE protocol_name = ? AND confidence >= ? ORDER BY id DESC",
                (protocol_name, min_confidence),
            )
        rows = await cursor.fetchall()
        return [
            ProtocolRule(protocol_name=row[0], rule=row[1], confidence=row[2], created_at=row[3])
            for row in rows
        ]

    async def drop_all(self) -> None:
        await self._database.db.execute("DELETE FROM protocol_rules")
        await self._database.db.commit()
        logger.info("rules_dropped")
