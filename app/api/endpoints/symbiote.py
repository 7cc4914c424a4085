from typing import Any, Dict, List
from urllib.parse import quote

from fastapi import APIRouter, Depends

import app.schemas.game as schemas
from app.core.config import settings
from app.core.dependencies import get_current_wallet, get_ledger
from app.core.errors import NotFoundError, NotFoundErrorKind
from app.services.ledger import AssetState, Ledger

router = APIRouter()
group_tags: List[str] = ["Symbiote"]


async def _load_state(ledger: Ledger, mint: str) -> AssetState:
    state = await ledger.fetch_asset_state(mint)
    if state is None:
        raise NotFoundError(NotFoundErrorKind.UNKNOWN_ASSET, "Symbiote not found")
    return state


@router.get(
    "/symbiote/{mint}",
    tags=group_tags,
    response_model=schemas.SymbioteStateOut,
)
async def get_symbiote(
    mint: str,
    wallet_address: str = Depends(get_current_wallet),
    ledger: Ledger = Depends(get_ledger),
) -> schemas.SymbioteStateOut:
    state = await _load_state(ledger, mint)
    return schemas.SymbioteStateOut.from_record(state)


@router.get("/metadata/{mint}/state.json", tags=group_tags)
async def get_metadata(mint: str, ledger: Ledger = Depends(get_ledger)) -> Dict[str, Any]:
    """Public token metadata for wallets and marketplaces."""
    state = await _load_state(ledger, mint)
    image = (
        f"{settings.METADATA_IMAGE_BASE_URL}"
        f"?seed={state.mint}-{state.level}-{quote(state.personality)}"
    )
    return {
        "name": f"Symbiote Pet #{state.mint[:6]}",
        "symbol": "SYMB",
        "description": "Autonomous financial pet evolving from wallet behavior.",
        "image": image,
        "attributes": [
            {"trait_type": "Level", "value": state.level},
            {"trait_type": "XP", "value": state.xp},
            {"trait_type": "Personality", "value": state.personality},
        ],
        "properties": {
            "category": "image",
            "files": [{"uri": image, "type": "image/svg+xml"}],
        },
    }
