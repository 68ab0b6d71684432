from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, field_validator
from typing import Optional, List, Union
from ...protocol.crypto.hash import to_hex, to_int
from ...protocol.types.common import ProtocolError
from ...protocol.types.pool import pool_name
from ..core.contract import LockContract
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Lockstake Contract RPC")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
contract: Optional[LockContract] = None

IntLike = Union[int, str]


class DepositRequest(BaseModel):
    caller: str
    start_time: int
    duration: int
    stake_amount: int

    @field_validator("stake_amount", mode="before")
    @classmethod
    def _parse_stake(cls, v: IntLike) -> int:
        return to_int(v)


class ClaimRequest(BaseModel):
    caller: str
    start_time: int
    duration: int
    completion_status: bool
    signature: List[IntLike]
    reward_amount: IntLike
    merkle_proof: List[IntLike] = []


class PublishRootRequest(BaseModel):
    caller: str
    day: int
    period: int
    root: IntLike


class AuthorityKeyRequest(BaseModel):
    caller: str
    public_key: IntLike


@app.exception_handler(ProtocolError)
async def protocol_error_handler(request, exc: ProtocolError):
    return JSONResponse(status_code=400, content={"code": exc.code, "detail": str(exc)})


def _require_contract() -> LockContract:
    if not contract:
        raise HTTPException(status_code=503, detail="Contract not initialized")
    return contract


def _pool_view(c: LockContract, day: int, period: int) -> dict:
    pool = c.get_pool(day, period)
    return {
        "day": pool.day,
        "period": pool.period,
        "pool_name": pool_name(pool.period, c.config.window_seconds),
        "total_staked": str(pool.total_staked),
        "participant_count": pool.participant_count,
        "merkle_root": to_hex(pool.merkle_root),
        "finalized": pool.finalized,
    }


@app.get("/status")
async def get_status():
    c = _require_contract()
    pools = c.state.all_pools()
    return {
        "network": c.config.network_id,
        "contract_address": c.address,
        "window_seconds": c.config.window_seconds,
        "ledger_time": c.clock(),
        "pools": len(pools),
        "finalized_pools": sum(1 for p in pools if p.finalized),
        "authority_public_key": to_hex(c.get_authority_key()),
    }


@app.get("/pools/{day}/{period}")
async def get_pool(day: int, period: int):
    c = _require_contract()
    return _pool_view(c, day, period)


@app.get("/pool_key/{timestamp}")
async def get_pool_key(timestamp: int):
    c = _require_contract()
    try:
        key = c.get_pool_key(timestamp)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"day": key.day, "period": key.period, "pool_name": pool_name(key.period, c.config.window_seconds)}


@app.get("/locks/{address}/{day}/{period}")
async def get_lock(address: str, day: int, period: int):
    c = _require_contract()
    try:
        lock = c.get_lock(address, day, period)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    data = lock.model_dump(mode="json")
    data["stake_amount"] = str(lock.stake_amount)
    data["payout"] = None if lock.payout is None else str(lock.payout)
    return data


@app.get("/claims/{address}/{day}/{period}")
async def get_claim_flag(address: str, day: int, period: int):
    c = _require_contract()
    try:
        return {"address": to_hex(address), "day": day, "period": period,
                "claimed": c.is_claimed(address, day, period)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/authority")
async def get_authority():
    c = _require_contract()
    return {"owner": c.state.authority.owner, "public_key": to_hex(c.get_authority_key())}


@app.get("/events")
async def get_events(limit: int = 50, event: Optional[str] = None):
    """Recent committed contract events, newest last."""
    c = _require_contract()
    try:
        items = c.events.recent(limit=limit, event=event)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown event type: {event}")
    return {"events": items}


@app.post("/deposit")
async def deposit(req: DepositRequest):
    c = _require_contract()
    lock = c.deposit(req.caller, req.start_time, req.duration, req.stake_amount)
    return {"status": "locked", "owner": lock.owner, "day": lock.day, "period": lock.period,
            "end_time": lock.end_time}


@app.post("/claim")
async def claim(req: ClaimRequest):
    c = _require_contract()
    payout = c.claim(req.caller, req.start_time, req.duration, req.completion_status,
                     req.signature, req.reward_amount, req.merkle_proof)
    return {"status": "claimed", "payout": str(payout)}


@app.post("/publish_root")
async def publish_root(req: PublishRootRequest):
    c = _require_contract()
    c.publish_root(req.caller, req.day, req.period, req.root)
    return _pool_view(c, req.day, req.period)


@app.post("/authority")
async def set_authority_key(req: AuthorityKeyRequest):
    c = _require_contract()
    key = c.set_authority_key(req.caller, req.public_key)
    return {"public_key": to_hex(key)}


@app.get("/metrics")
async def get_metrics():
    """Prometheus metrics endpoint."""
    try:
        from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
        from ...observability.metrics import metrics_registry, update_metrics

        if contract:
            update_metrics(contract)

        return Response(
            content=generate_latest(metrics_registry),
            media_type=CONTENT_TYPE_LATEST
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Metrics error: {str(e)}")


def start_rpc_server(contract_instance: LockContract, host: str = "0.0.0.0", port: int = 8000):
    global contract
    contract = contract_instance
    import uvicorn
    logger.info(f"Starting contract RPC on {host}:{port}")
    uvicorn.run(app, host=host, port=port)
