from fastapi import APIRouter, Depends

from rumori.api.dependencies import get_services, require_user
from rumori.api.schemas import BalanceResponse, CoinTransaction
from rumori.container import Services

router = APIRouter(prefix="/coins", tags=["coins"])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(_: str = Depends(require_user), services: Services = Depends(get_services)):
    return BalanceResponse(balance=await services.coins.fetch_balance())


@router.post("/earn", response_model=BalanceResponse)
async def earn(
    data: CoinTransaction,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    balance = await services.coins.earn_coins(data.amount, data.project_id, data.description)
    return BalanceResponse(balance=balance)


@router.post("/spend", response_model=BalanceResponse)
async def spend(
    data: CoinTransaction,
    _: str = Depends(require_user),
    services: Services = Depends(get_services),
):
    """Spend coins; answers 402 when the balance is too low."""
    balance = await services.coins.spend_coins(data.amount, data.project_id, data.description)
    return BalanceResponse(balance=balance)
