from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from gambit.core.logger import get_logger
from gambit.core.security import is_valid_player, require_admin_api
from gambit.routers.api import get_machine

logger = get_logger("admin")

router = APIRouter(dependencies=[Depends(require_admin_api)])


# Request models
class FundPoolRequest(BaseModel):
    amount: int = Field(..., gt=0)


class GrantRequest(BaseModel):
    player: str
    amount: int = Field(..., gt=0)


class MineRequest(BaseModel):
    blocks: int = Field(1, ge=1, le=10_000)


def _check_player(player: str):
    if not is_valid_player(player):
        raise HTTPException(status_code=400, detail="Invalid player identity")


@router.post("/fund-pool")
async def fund_pool(request: Request, data: FundPoolRequest):
    """Top up the prize pool every payout is drawn from."""
    machine = get_machine(request)
    balance = machine.treasury.fund_pool(data.amount)
    logger.info("Pool funded", extra={"amount": data.amount, "pool_balance": balance})
    return {"success": True, "pool_balance": balance}


@router.post("/faucet")
async def faucet(request: Request, data: GrantRequest):
    _check_player(data.player)
    machine = get_machine(request)
    balance = machine.treasury.deposit(data.player, data.amount)
    return {"success": True, "player": data.player, "balance": balance}


@router.post("/mint-credits")
async def mint_credits(request: Request, data: GrantRequest):
    _check_player(data.player)
    machine = get_machine(request)
    credits = machine.bonus.mint(data.player, data.amount)
    logger.info("Bonus credits granted", extra={"player": data.player, "amount": data.amount})
    return {"success": True, "player": data.player, "bonus_credits": credits}


@router.post("/mine")
async def mine(request: Request, data: MineRequest = None):
    """Advance the block clock by hand (for chains that don't produce blocks)."""
    blocks = data.blocks if data else 1
    height = get_machine(request).mine(blocks)
    return {"success": True, "current_block": height}


@router.get("/stats")
async def stats(request: Request):
    machine = get_machine(request)
    return {**machine.db.get_stats(), **machine.status()}
