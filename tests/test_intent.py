import pytest
from conftest import FakeLLM

from app.errors import ProviderTimeout
from app.services.intent_service import (
    INTENT_MAX_TOKENS,
    INTENT_TEMPERATURE,
    Intent,
    classify_intent,
    is_greeting,
    parse_intent_label,
)


class TestIntentEnum:
    def test_all_intents_defined(self):
        expected = {
            "schedule_query",
            "traffic_query",
            "route_query",
            "absence_request",
            "admin_command",
            "general_question",
        }
        assert {i.value for i in Intent} == expected


class TestGreeting:
    @pytest.mark.parametrize("text", ["hi", "Hello", " hey! ", "Good morning", "good evening."])
    def test_greetings(self, text):
        assert is_greeting(text) is True

    @pytest.mark.parametrize("text", ["hi, what's my schedule?", "hello there", "", "morning"])
    def test_not_greetings(self, text):
        assert is_greeting(text) is False


class TestParseLabel:
    def test_exact_label(self):
        assert parse_intent_label("traffic_query") == Intent.TRAFFIC_QUERY

    def test_label_with_noise(self):
        assert parse_intent_label("  Route_Query.\n") == Intent.ROUTE_QUERY

    def test_unknown_label_falls_back(self):
        assert parse_intent_label("weather_query") == Intent.GENERAL_QUESTION


class TestClassifyIntent:
    @pytest.mark.asyncio
    async def test_uses_classifier_settings(self):
        llm = FakeLLM(["schedule_query"])
        intent = await classify_intent("When do I work tomorrow?", llm)

        assert intent == Intent.SCHEDULE_QUERY
        call = llm.calls[0]
        assert call["temperature"] == INTENT_TEMPERATURE
        assert call["max_tokens"] == INTENT_MAX_TOKENS
        assert call["messages"][0]["role"] == "system"
        assert call["messages"][1] == {"role": "user", "content": "When do I work tomorrow?"}

    @pytest.mark.asyncio
    async def test_provider_failure_falls_back(self):
        llm = FakeLLM([ProviderTimeout("LLM request timed out")])
        assert await classify_intent("traffic?", llm) == Intent.GENERAL_QUESTION

    @pytest.mark.asyncio
    async def test_unexpected_failure_falls_back(self):
        llm = FakeLLM([RuntimeError("socket closed")])
        assert await classify_intent("traffic?", llm) == Intent.GENERAL_QUESTION
