"""JSON API endpoints: stored data reads and on-demand pipeline runs."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from lendbot.chain.address import validate_address
from lendbot.logging import get_logger
from lendbot.pipelines.base import PipelineContext, PipelineOptions

logger = get_logger(__name__)

router = APIRouter()


class PipelineRequest(BaseModel):
    """Body of POST /api/pipelines/{name}."""

    user_id: str = "api"
    text: str = ""
    include_logs: bool = False
    should_post: bool = False
    hours_to_predict: int | None = Field(default=None, ge=1, le=168)
    protocols: list[str] = Field(default_factory=list)
    coins: list[str] = Field(default_factory=list)
    wallet_addresses: list[str] = Field(default_factory=list)

    def to_options(self, default_hours_to_predict: int) -> PipelineOptions:
        """Build pipeline options; an omitted forecast horizon takes the configured default."""
        hours = self.hours_to_predict
        return PipelineOptions(
            include_logs=self.include_logs,
            should_post=self.should_post,
            hours_to_predict=default_hours_to_predict if hours is None else hours,
            protocols=self.protocols,
            coins=self.coins,
            wallet_addresses=self.wallet_addresses,
        )


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Scheduler job states, registered protocols and stored snapshot count."""
    state = request.app.state
    return JSONResponse(
        content={
            "protocols": state.registry.protocols(),
            "jobs": state.scheduler.status(),
            "snapshot_count": await state.snapshots.count(),
            "pipelines": sorted(state.pipelines),
        }
    )


@router.get("/snapshots/{protocol}")
async def get_protocol_snapshots(request: Request, protocol: str) -> JSONResponse:
    snapshots = await request.app.state.snapshots.get_by_protocol(protocol.upper())
    return JSONResponse(content=[s.to_dict() for s in snapshots])


@router.get("/snapshots/{protocol}/{mint}")
async def get_mint_snapshots(request: Request, protocol: str, mint: str) -> JSONResponse:
    mint = validate_address(mint)
    snapshots = await request.app.state.snapshots.get_by_mint(protocol.upper(), mint)
    return JSONResponse(content=[s.to_dict() for s in snapshots])


@router.get("/positions/{wallet}")
async def get_positions(request: Request, wallet: str) -> JSONResponse:
    wallet = validate_address(wallet)
    positions = await request.app.state.positions.get_active(wallet)
    return JSONResponse(content=[p.to_dict() for p in positions])


@router.get("/rules/{protocol}")
async def get_rules(
    request: Request,
    protocol: str,
    min_confidence: int | None = Query(default=None, ge=0, le=100),
) -> JSONResponse:
    rules = await request.app.state.rules.get_by_protocol(protocol.upper(), min_confidence)
    return JSONResponse(content=[r.to_dict() for r in rules])


@router.get("/predictions")
async def get_predictions(request: Request) -> JSONResponse:
    predictions = await request.app.state.predictions.get_all()
    return JSONResponse(content=[p.to_dict() for p in predictions])


@router.get("/predictions/{protocol}/{mint}")
async def get_prediction(request: Request, protocol: str, mint: str) -> JSONResponse:
    mint = validate_address(mint)
    prediction = await request.app.state.predictions.get_latest(protocol.upper(), mint)
    if prediction is None:
        return JSONResponse(
            status_code=404,
            content={"detail": f"Prediction not available for {protocol.upper()} {mint}"},
        )
    return JSONResponse(content=prediction.to_dict())


@router.get("/wallets/{user_id}")
async def get_wallets(request: Request, user_id: str) -> JSONResponse:
    wallets = await request.app.state.wallets.get_by_user(user_id)
    return JSONResponse(content=[asdict(w) for w in wallets])


@router.post("/pipelines/{name}")
async def run_pipeline(request: Request, name: str, body: PipelineRequest) -> JSONResponse:
    """Run a pipeline on demand and return its summary and structured data.

    A pipeline that rejects its options (ok=False) answers 400.
    """
    pipeline = request.app.state.pipelines.get(name)
    if pipeline is None:
        return JSONResponse(status_code=404, content={"detail": f"Unknown pipeline: {name}"})

    logger.info("api_pipeline_requested", pipeline=name, user_id=body.user_id)
    context = PipelineContext(user_id=body.user_id, text=body.text)
    settings = request.app.state.settings
    options = body.to_options(settings.pipeline.default_hours_to_predict)
    result = await pipeline.run(context, options)

    return JSONResponse(
        status_code=200 if result.ok else 400,
        content={"ok": result.ok, "summary": result.summary, "data": result.data},
    )
