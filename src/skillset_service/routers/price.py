"""SKILL token price endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from skillset_service.core.state import get_app_state
from skillset_service.schemas import PriceResponse

router = APIRouter()


@router.get("/api/skill-price", response_model=PriceResponse)
async def get_skill_price() -> PriceResponse:
    """Current token price in USDC; ``null`` when the price source is unavailable."""
    state = get_app_state()
    if state.price_client is None:
        msg = "PriceClient not initialized"
        raise RuntimeError(msg)

    return PriceResponse(price=await state.price_client.get_price())
