import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import openai
import pytest

from app.core.errors import ExternalServiceError, ExternalServiceErrorKind
from app.schemas.game import DEFAULT_RECOMMENDATION_TEXT, SOL_MINT, USDC_MINT
from app.services.inference import (
    SymbioteInference,
    assessment_from_output,
    personality_from_output,
    safe_json_parse,
    turn_from_output,
)


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_client(create: AsyncMock):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


class TestSafeJsonParse:
    def test_plain_json(self):
        assert safe_json_parse('{"a": 1}') == {"a": 1}

    def test_json_inside_prose(self):
        text = 'Sure! Here is the turn:\n```json\n{"game_name": "Duel"}\n```'
        assert safe_json_parse(text) == {"game_name": "Duel"}

    @pytest.mark.parametrize("text", ["", "nothing here", "[1, 2]", "{broken", None])
    def test_unusable_output(self, text):
        assert safe_json_parse(text) == {}


class TestTurnFromOutput:
    def test_empty_output_is_neutral_turn(self):
        turn = turn_from_output("")
        assert turn.game_name == "Symbiote Arena"
        assert turn.archetype == "Explorer"
        assert turn.requires_trade is False
        assert turn.trade.input_mint == SOL_MINT
        assert turn.trade.output_mint == USDC_MINT
        assert turn.trade.amount_lamports_or_units == "10000000"

    def test_fields_default_independently(self):
        text = json.dumps(
            {
                "game_name": "Liquidity Maze",
                "objective": None,
                "requires_trade": "false",
                "trade": {"amount_lamports_or_units": 5000, "input_mint": None},
            }
        )
        turn = turn_from_output(text)

        assert turn.game_name == "Liquidity Maze"
        assert turn.objective == "Preserve energy while compounding XP."
        assert turn.requires_trade is False
        assert turn.trade.amount_lamports_or_units == "5000"
        assert turn.trade.input_mint == SOL_MINT

    def test_truthy_trade_flag(self):
        assert turn_from_output('{"requires_trade": true}').requires_trade is True

    def test_non_object_trade_falls_back(self):
        turn = turn_from_output('{"requires_trade": true, "trade": "buy the dip"}')
        assert turn.trade.text == "Rotate some risk into SOL."

    def test_container_for_text_field_falls_back(self):
        turn = turn_from_output('{"move_text": {"nested": true}}')
        assert turn.move_text == "The Symbiote scouts liquidity corridors."


class TestPersonalityFromOutput:
    def test_parsed(self):
        update = personality_from_output('{"personality": "Bold", "reason": "big swap"}', "Neutral")
        assert update.personality == "Bold"
        assert update.reason == "big swap"

    def test_missing_personality_keeps_current(self):
        update = personality_from_output("model rambled", "Patient")
        assert update.personality == "Patient"
        assert update.reason == "Updated from latest trade behavior."

    @pytest.mark.parametrize(
        "value", [{"label": "Bold"}, ["Bold"], 42, True, "   ", None]
    )
    def test_unusable_personality_keeps_current(self, value):
        update = personality_from_output(json.dumps({"personality": value}), "Patient")
        assert update.personality == "Patient"


class TestAssessmentFromOutput:
    def test_empty_output_uses_defaults(self):
        assessment = assessment_from_output("")
        assert assessment.risk_profile == "Balanced"
        assert assessment.personality == "Adaptive"
        assert assessment.reaction == "I am adapting to your current market tempo."
        assert assessment.recommendation.text == DEFAULT_RECOMMENDATION_TEXT
        assert assessment.recommendation.input_mint == SOL_MINT
        assert assessment.recommendation.output_mint == USDC_MINT

    def test_partial_recommendation(self):
        text = json.dumps(
            {
                "risk_profile": "Degen",
                "reaction": ["not", "a", "sentence"],
                "recommendation": {"text": None, "amount_lamports_or_units": 250000},
            }
        )
        assessment = assessment_from_output(text)

        assert assessment.risk_profile == "Degen"
        assert assessment.reaction == "I am adapting to your current market tempo."
        assert assessment.recommendation.text == DEFAULT_RECOMMENDATION_TEXT
        assert assessment.recommendation.amount_lamports_or_units == "250000"

    def test_non_object_recommendation(self):
        assessment = assessment_from_output('{"recommendation": "ape in"}')
        assert assessment.recommendation.text == DEFAULT_RECOMMENDATION_TEXT


class TestSymbioteInference:
    def test_infer_turn(self):
        create = AsyncMock(return_value=completion('{"game_name": "Raid", "requires_trade": true}'))
        inference = SymbioteInference(client=fake_client(create), model="test-model")

        turn = asyncio.run(inference.infer_turn({"walletAddress": "W1"}))

        assert turn.game_name == "Raid"
        assert turn.requires_trade is True
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"][0]["role"] == "system"
        assert json.loads(kwargs["messages"][1]["content"]) == {"walletAddress": "W1"}

    def test_infer_personality_prompt(self):
        create = AsyncMock(return_value=completion('{"personality": "Greedy"}'))
        inference = SymbioteInference(client=fake_client(create))

        update = asyncio.run(
            inference.infer_personality(
                {"wallet_address": "W1", "trade_volume": 20.0, "personality": "Neutral"}
            )
        )

        assert update.personality == "Greedy"
        prompt = create.call_args.kwargs["messages"][0]["content"]
        assert "Wallet: W1" in prompt
        assert "Latest trade volume: 20.0" in prompt

    def test_infer_symbiote_state(self):
        create = AsyncMock(
            return_value=completion('{"risk_profile": "Conservative", "personality": "Monk"}')
        )
        inference = SymbioteInference(client=fake_client(create))

        assessment = asyncio.run(inference.infer_symbiote_state({"walletAddress": "W1"}))

        assert assessment.risk_profile == "Conservative"
        assert assessment.personality == "Monk"
        kwargs = create.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert "risk_profile" in kwargs["messages"][0]["content"]

    def test_empty_choices(self):
        create = AsyncMock(return_value=SimpleNamespace(choices=[]))
        inference = SymbioteInference(client=fake_client(create))
        update = asyncio.run(inference.infer_personality({"personality": "Calm"}))
        assert update.personality == "Calm"

    def test_client_error_is_unreachable(self):
        create = AsyncMock(side_effect=openai.OpenAIError("connection reset"))
        inference = SymbioteInference(client=fake_client(create))

        with pytest.raises(ExternalServiceError) as exc_info:
            asyncio.run(inference.infer_turn({}))
        assert exc_info.value.kind == ExternalServiceErrorKind.INFERENCE_UNREACHABLE
        assert exc_info.value.http_status == 502

    def test_missing_api_key(self):
        inference = SymbioteInference()
        with patch("app.services.inference.settings.OPENAI_API_KEY", None):
            with pytest.raises(ExternalServiceError) as exc_info:
                asyncio.run(inference.infer_turn({}))
        assert exc_info.value.kind == ExternalServiceErrorKind.INFERENCE_UNREACHABLE
