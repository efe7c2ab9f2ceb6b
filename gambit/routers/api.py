from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from gambit.config import settings
from gambit.core.gambit import DegenGambit
from gambit.core.logger import get_logger
from gambit.core.reels import NUM_SYMBOLS, REELS, SAMPLERS
from gambit.core.security import get_player, is_valid_player, set_player_cookie
from gambit.core.websocket import ws_manager

limiter = Limiter(key_func=get_remote_address)

logger = get_logger("api")

router = APIRouter()

# ==================== Request Models ====================

class SpinRequest(BaseModel):
    boosted: bool = False
    value: int = Field(..., ge=0)


class RegisterRequest(BaseModel):
    player: str


# ==================== Helpers ====================

def get_machine(request: Request) -> DegenGambit:
    return request.app.state.machine


def get_rate_limit() -> str:
    """Rate limit for spin / accept, from config."""
    return settings.rate_limit.game_requests if settings.rate_limit.enabled else "1000/minute"


def get_api_rate_limit() -> str:
    return settings.rate_limit.api_requests if settings.rate_limit.enabled else "1000/minute"


def parse_entropy(raw: str) -> int:
    """Decimal or 0x-prefixed hex; entropy is too wide for a JSON number."""
    try:
        value = int(raw, 0)
    except ValueError:
        logger.debug("Rejected entropy value", extra={"raw": raw[:80]})
        raise HTTPException(status_code=400, detail="Entropy must be a decimal or 0x-hex integer")
    if value < 0:
        raise HTTPException(status_code=400, detail="Entropy must not be negative")
    return value


def session_view(machine: DegenGambit, player: str) -> dict:
    record = machine.session(player)
    return {
        "player": player,
        "last_action_block": record.last_action_block,
        "last_action_boosted": record.last_action_boosted,
        "pending": record.pending,
        "deadline": record.deadline(machine.blocks_to_act),
        "current_block": machine.clock.current_block,
        "spin_cost": machine.spin_cost(player),
        "balance": machine.treasury.balance_of(player),
        "bonus_credits": machine.bonus.balance_of(player),
        "daily_streak": record.daily_streak_length,
        "weekly_streak": record.weekly_streak_length,
    }


# ==================== Player Endpoints ====================

@router.post("/register")
@limiter.limit(get_rate_limit)
async def register(request: Request, response: Response, data: RegisterRequest):
    """Claim an unused player identity and receive its signed session cookie."""
    if not is_valid_player(data.player):
        raise HTTPException(status_code=400, detail="Invalid player identity")

    machine = get_machine(request)
    if not machine.db.register_player(data.player):
        raise HTTPException(status_code=409, detail="Player already registered")

    set_player_cookie(response, data.player)
    logger.info("Player registered", extra={"player": data.player})
    return {"success": True, "player": data.player}


@router.get("/spin-cost")
@limiter.limit(get_api_rate_limit)
async def spin_cost(request: Request):
    player = get_player(request)
    machine = get_machine(request)
    return {
        "player": player,
        "spin_cost": machine.spin_cost(player),
        "current_block": machine.clock.current_block,
    }


@router.get("/session")
@limiter.limit(get_api_rate_limit)
async def get_session(request: Request):
    player = get_player(request)
    return session_view(get_machine(request), player)


@router.post("/spin")
@limiter.limit(get_rate_limit)
async def spin(request: Request, data: SpinRequest):
    player = get_player(request)
    machine = get_machine(request)

    receipt = machine.spin(player, data.boosted, data.value)
    await ws_manager.broadcast_spin(player, data.boosted, receipt.block)

    return {**receipt.to_dict(), "balance": machine.treasury.balance_of(player)}


@router.post("/accept")
@limiter.limit(get_rate_limit)
async def accept(request: Request):
    player = get_player(request)
    machine = get_machine(request)

    receipt = machine.accept(player)
    if receipt.payout > 0:
        await ws_manager.broadcast_award(player, receipt.payout, receipt.block)

    return {**receipt.to_dict(), "balance": machine.treasury.balance_of(player)}


@router.post("/accept-then-spin")
@limiter.limit(get_rate_limit)
async def accept_then_spin(request: Request, data: SpinRequest):
    player = get_player(request)
    machine = get_machine(request)

    accepted, spun = machine.accept_then_spin(player, data.boosted, data.value)
    if accepted.payout > 0:
        await ws_manager.broadcast_award(player, accepted.payout, accepted.block)
    await ws_manager.broadcast_spin(player, data.boosted, spun.block)

    return {
        "accept": accepted.to_dict(),
        "spin": spun.to_dict(),
        "balance": machine.treasury.balance_of(player),
    }


# ==================== Verification Endpoints ====================

@router.get("/outcome")
@limiter.limit(get_api_rate_limit)
async def get_outcome(request: Request, entropy: str, boosted: bool = False):
    """Replay the reels for a given entropy value."""
    machine = get_machine(request)
    result = machine.outcome(parse_entropy(entropy), boosted)
    return {
        **result.to_dict(),
        "boosted": boosted,
        "pattern": machine.payout_table.classify(*result.symbols),
    }


@router.get("/payout")
@limiter.limit(get_api_rate_limit)
async def get_payout(
    request: Request,
    left: int = Query(..., ge=0, le=NUM_SYMBOLS - 1),
    center: int = Query(..., ge=0, le=NUM_SYMBOLS - 1),
    right: int = Query(..., ge=0, le=NUM_SYMBOLS - 1),
):
    machine = get_machine(request)
    return {
        "left": left,
        "center": center,
        "right": right,
        "pattern": machine.payout_table.classify(left, center, right),
        "payout": machine.payout(left, center, right),
    }


@router.get("/reels")
@limiter.limit(get_api_rate_limit)
async def list_reels(request: Request):
    return {"reels": [table.to_dict() for table in REELS.values()]}


@router.get("/reels/{name}")
@limiter.limit(get_api_rate_limit)
async def get_reel(request: Request, name: str):
    table = REELS.get(name)
    if table is None:
        raise HTTPException(status_code=404, detail=f"Unknown reel: {name}")
    return table.to_dict()


@router.get("/reels/{name}/sample")
@limiter.limit(get_api_rate_limit)
async def sample_reel(request: Request, name: str, entropy: str):
    sampler = SAMPLERS.get(name)
    if sampler is None:
        raise HTTPException(status_code=404, detail=f"Unknown reel: {name}")
    return {"reel": name, "symbol": sampler(parse_entropy(entropy))}


@router.get("/chain")
@limiter.limit(get_api_rate_limit)
async def chain_status(request: Request):
    return get_machine(request).status()


@router.get("/events")
@limiter.limit(get_api_rate_limit)
async def get_events(
    request: Request,
    player: Optional[str] = None,
    kind: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
):
    machine = get_machine(request)
    return {"events": machine.db.get_events(player=player, kind=kind, limit=limit)}
