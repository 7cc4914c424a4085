import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from app.core.config import settings
from app.core.errors import ExternalServiceError, ExternalServiceErrorKind
from app.schemas.game import TradeIntent


@dataclass
class SwapPlan:
    quote: Dict[str, Any]
    swap_transaction_base64: str
    last_valid_block_height: Optional[int] = None
    prioritization_fee_lamports: Optional[int] = None


class JupiterSwapPlanner:
    """Quote + unsigned swap transaction from the Jupiter aggregator."""

    def __init__(
        self,
        api_base: str = settings.JUPITER_API_BASE,
        fee_bps: int = settings.JUPITER_FEE_BPS,
        fee_account: str = settings.JUPITER_REFERRAL_FEE_ACCOUNT,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
    ):
        self.api_base = api_base.rstrip("/")
        self.fee_bps = fee_bps
        self.fee_account = fee_account
        self.timeout = timeout

    def _build(self, wallet_address: str, intent: TradeIntent) -> SwapPlan:
        params = {
            "inputMint": intent.input_mint,
            "outputMint": intent.output_mint,
            "amount": intent.amount_lamports_or_units,
            "slippageBps": "50",
            "platformFeeBps": str(self.fee_bps),
        }
        try:
            quote_res = requests.get(f"{self.api_base}/quote", params=params, timeout=self.timeout)
            if quote_res.status_code != 200:
                raise ExternalServiceError(
                    ExternalServiceErrorKind.SWAP_BUILDER_FAILURE,
                    f"Quote failed: {quote_res.status_code} {quote_res.text}",
                )
            quote = quote_res.json()

            body = {
                "quoteResponse": quote,
                "userPublicKey": wallet_address,
                "wrapAndUnwrapSol": True,
                "dynamicComputeUnitLimit": True,
                "prioritizationFeeLamports": "auto",
            }
            if self.fee_account:
                body["feeAccount"] = self.fee_account
            swap_res = requests.post(f"{self.api_base}/swap", json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalServiceError(ExternalServiceErrorKind.SWAP_BUILDER_FAILURE, str(e))
        except ValueError:
            raise ExternalServiceError(
                ExternalServiceErrorKind.SWAP_BUILDER_FAILURE, "Quote returned a non-JSON body"
            )
        if swap_res.status_code != 200:
            raise ExternalServiceError(
                ExternalServiceErrorKind.SWAP_BUILDER_FAILURE,
                f"Swap build failed: {swap_res.status_code} {swap_res.text}",
            )
        try:
            swap = swap_res.json()
        except ValueError:
            raise ExternalServiceError(
                ExternalServiceErrorKind.SWAP_BUILDER_FAILURE, "Swap build returned a non-JSON body"
            )
        if not isinstance(swap, dict):
            raise ExternalServiceError(
                ExternalServiceErrorKind.SWAP_BUILDER_FAILURE, "Swap build returned an unexpected payload"
            )

        return SwapPlan(
            quote=quote,
            swap_transaction_base64=swap.get("swapTransaction", ""),
            last_valid_block_height=swap.get("lastValidBlockHeight"),
            prioritization_fee_lamports=swap.get("prioritizationFeeLamports"),
        )

    async def build_swap_plan(self, wallet_address: str, intent: TradeIntent) -> SwapPlan:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._build, wallet_address, intent)
