"""
LLM inference for the symbiote.

Model output is untrusted: it is parsed leniently (falling back to the outermost
{...} block) and every field is defaulted on its own, so a malformed reply
degrades to a neutral turn instead of failing the request or the autoplay tick.
"""

import json
import logging
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from app.core.config import settings
from app.core.errors import ExternalServiceError, ExternalServiceErrorKind
from app.schemas.game import (
    DEFAULT_RECOMMENDATION_TEXT,
    SOL_MINT,
    USDC_MINT,
    SymbioteAssessment,
    TradeIntent,
    TurnPlan,
)
from app.schemas.trade import PersonalityUpdate

logger = logging.getLogger(__name__)

TURN_SYSTEM_PROMPT = f"""
You are a game master for an autonomous on-chain companion.
Create one turn for a persistent game where the Symbiote plays for its owner.
Return strict JSON:
{{
  "game_name": "string",
  "objective": "string",
  "move_text": "string",
  "outcome_text": "string",
  "archetype": "string",
  "requires_trade": true|false,
  "trade": {{
    "text": "string",
    "input_mint": "mint address",
    "output_mint": "mint address",
    "amount_lamports_or_units": "integer string amount"
  }}
}}
Use SOL mint {SOL_MINT}
Use USDC mint {USDC_MINT}
"""

ASSESSMENT_SYSTEM_PROMPT = f"""
You are Symbiote, an autonomous Solana trading companion.
Return strict JSON with this shape:
{{
  "risk_profile": "Conservative|Balanced|Aggressive|Degen",
  "personality": "short unique label",
  "reaction": "one sentence in-character reaction",
  "recommendation": {{
    "text": "next trade suggestion",
    "input_mint": "mint address (default SOL)",
    "output_mint": "mint address (default USDC)",
    "amount_lamports_or_units": "integer string amount"
  }}
}}
Use mints:
SOL {SOL_MINT}
USDC {USDC_MINT}
"""

PERSONALITY_PROMPT = """Wallet: {wallet_address}
Current personality: {personality}
Latest trade volume: {volume}
Generate JSON: {{"personality":"...","reason":"..."}}"""


def safe_json_parse(text: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        first = text.find("{") if text else -1
        last = text.rfind("}") if text else -1
        if first < 0 or last <= first:
            return {}
        try:
            parsed = json.loads(text[first:last + 1])
        except ValueError:
            return {}
    return parsed if isinstance(parsed, dict) else {}


def turn_from_output(text: str) -> TurnPlan:
    parsed = safe_json_parse(text)
    raw_trade = parsed.pop("trade", None)
    trade = TradeIntent(**raw_trade) if isinstance(raw_trade, dict) else TradeIntent()
    return TurnPlan(**parsed, trade=trade)


def personality_from_output(text: str, current: str) -> PersonalityUpdate:
    parsed = safe_json_parse(text)
    personality = parsed.get("personality")
    if not isinstance(personality, str) or not personality.strip():
        parsed["personality"] = current
    return PersonalityUpdate(**parsed)


def assessment_from_output(text: str) -> SymbioteAssessment:
    parsed = safe_json_parse(text)
    raw = parsed.pop("recommendation", None)
    recommendation = dict(raw) if isinstance(raw, dict) else {}
    if not isinstance(recommendation.get("text"), str) or not recommendation["text"]:
        recommendation["text"] = DEFAULT_RECOMMENDATION_TEXT
    return SymbioteAssessment(**parsed, recommendation=TradeIntent(**recommendation))


class SymbioteInference:
    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = settings.OPENAI_MODEL):
        self._client = client
        self.model = model

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.OPENAI_API_KEY:
                raise ExternalServiceError(
                    ExternalServiceErrorKind.INFERENCE_UNREACHABLE,
                    "OPENAI_API_KEY is not configured",
                )
            self._client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    async def _complete(self, messages: list, temperature: float) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            raise ExternalServiceError(ExternalServiceErrorKind.INFERENCE_UNREACHABLE, str(e))
        if not response.choices:
            return "{}"
        return response.choices[0].message.content or "{}"

    async def infer_turn(self, context: Dict[str, Any]) -> TurnPlan:
        text = await self._complete(
            [
                {"role": "system", "content": TURN_SYSTEM_PROMPT},
                {"role": "user", "content": json.dumps(context, default=str)},
            ],
            temperature=0.6,
        )
        return turn_from_output(text)

    async def infer_personality(self, context: Dict[str, Any]) -> PersonalityUpdate:
        current = context.get("personality") or "Neutral"
        text = await self._complete(
            [
                {
                    "role": "user",
                    "content": PERSONALITY_PROMPT.format(
                        wallet_address=context.get("wallet_address", ""),
                        personality=current,
                        volume=context.get("trade_volume", 0),
                    ),
                }
            ],
            temperature=0.5,
        )
        return personality_from_output(text, current)

    async def infer_symbiote_state(self, context: Dict[str, Any]) -> SymbioteAssessment:
        """Risk profile, mood and next trade suggestion from recent trades and memory."""
        text = await self._complete(
            [
                {"role": "system", "content": ASSESSMENT_SYSTEM_PROMPT},
                {"role": "user", "content": json.dumps(context, default=str)},
            ],
            temperature=0.3,
        )
        return assessment_from_output(text)
