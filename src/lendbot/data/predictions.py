"""Overwrite-latest store for APY predictions, keyed by (protocol, mint).

A prediction is a perishable artifact: saving a new one replaces the old row
so a stale forecast is never stacked silently under a fresh one.
"""

import json
from decimal import Decimal

from lendbot.data.database import LendingDatabase
from lendbot.logging import get_logger
from lendbot.models import PredictedApyPoint, ProtocolPredictedApy

logger = get_logger(__name__)

_COLUMNS = "protocol_name, mint_address, coin_name, predicted_apy, timestamp"


def _row_to_prediction(row: tuple) -> ProtocolPredictedApy:
    points = [
        PredictedApyPoint(timestamp=int(p["timestamp"]), apy=Decimal(str(p["apy"])))
        for p in json.loads(row[3])
    ]
    return ProtocolPredictedApy(
        protocol_name=row[0],
        mint_address=row[1],
        coin_name=row[2],
        predicted_apy=points,
        timestamp=row[4],
    )


class PredictionStore:
    """Async store over the protocol_predicted_apy table."""

    def __init__(self, database: LendingDatabase) -> None:
        self._database = database

    async def save(self, prediction: ProtocolPredictedApy) -> None:
        """Store a prediction, replacing any previous one for the same key."""
        payload = json.dumps([p.to_dict() for p in prediction.predicted_apy])
        await self._database.db.execute(
            f"INSERT OR REPLACE INTO protocol_predicted_apy ({_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                prediction.protocol_name,
                prediction.mint_address,
                prediction.coin_name,
                payload,
                prediction.timestamp,
            ),
        )
        await self._database.db.commit()
        logger.debug(
            "prediction_saved",
            protocol=prediction.protocol_name,
            mint=prediction.mint_address,
            points=len(prediction.predicted_apy),
        )

    async def get_latest(self, protocol_name: str, mint_address: str) -> ProtocolPredictedApy | None:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM protocol_predicted_apy "
            "WHERE protocol_name = ? AND mint_address = ?",
            (protocol_name, mint_address),
        )
        row = await cursor.fetchone()
        return _row_to_prediction(row) if row is not None else None

    async def get_all_by_protocol(self, protocol_name: str) -> list[ProtocolPredictedApy]:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM protocol_predicted_apy WHERE protocol_name = ?",
            (protocol_name,),
        )
        return [_row_to_prediction(row) for row in await cursor.fetchall()]

    async def get_all(self) -> list[ProtocolPredictedApy]:
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM protocol_predicted_apy"
        )
        return [_row_to_prediction(row) for row in await cursor.fetchall()]
