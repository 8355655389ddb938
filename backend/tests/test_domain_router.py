"""
Tests for the domain router: heuristic fast path, label parsing and
fallback to casual on any classifier failure.
"""

import asyncio
import time

import pytest

from routers.chat_orchestration.domain_router import (
    Domain,
    DomainRouter,
    parse_label,
    references_prior_output,
)

from conftest import FakeLLMClient


class TestParseLabel:
    """Free-form answers map onto exactly three domains."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("memory", Domain.MEMORY),
            ("  Memory.\n", Domain.MEMORY),
            ('"authentication"', Domain.AUTHENTICATION),
            ("AUTHENTICATION", Domain.AUTHENTICATION),
            ("casual", Domain.CASUAL),
            ("weather", Domain.CASUAL),
            ("memory or casual", Domain.CASUAL),
            ("", Domain.CASUAL),
            (None, Domain.CASUAL),
        ],
    )
    def test_labels(self, raw, expected):
        assert parse_label(raw) == expected


class TestFastPath:
    """Messages referring to earlier output skip the model."""

    @pytest.mark.parametrize(
        "text",
        ["dame la lista otra vez", "¿qué me dijiste antes?", "you said something earlier", "lo de recién"],
    )
    def test_prior_output_references(self, text):
        assert references_prior_output(text)

    def test_plain_question_is_not_fast_path(self):
        assert not references_prior_output("¿de qué color es el auto de mi tío?")

    def test_fast_path_makes_no_call(self, config):
        client = FakeLLMClient(domain="memory")
        router = DomainRouter(client, config)

        decision = asyncio.run(router.route("dame la lista"))

        assert decision.domain == Domain.CASUAL
        assert decision.fast_path is True
        assert client.calls == []


class TestClassification:
    """One constrained completion call with the router model."""

    def test_uses_model_label(self, config):
        config.model_router = "router-model"
        client = FakeLLMClient(domain="memory")
        router = DomainRouter(client, config)

        domain = asyncio.run(router.classify("¿cómo se llama mi perro?"))

        assert domain == Domain.MEMORY
        assert len(client.calls) == 1
        call = client.calls[0]
        assert call["model"] == "router-model"
        assert call["messages"][-1] == {"role": "user", "content": "¿cómo se llama mi perro?"}

    def test_unexpected_label_defaults_to_casual(self, config):
        router = DomainRouter(FakeLLMClient(domain="sports"), config)
        assert asyncio.run(router.classify("¿quién ganó el partido?")) == Domain.CASUAL

    def test_failure_defaults_to_casual(self, config):
        """A failing classifier never fails the turn."""
        router = DomainRouter(FakeLLMClient(domain=RuntimeError("provider down")), config)

        decision = asyncio.run(router.route("quiero iniciar sesión"))

        assert decision.domain == Domain.CASUAL
        assert decision.error == "provider down"

    def test_timeout_defaults_to_casual(self, config):
        class SlowClient:
            def chat(self, **kwargs):
                time.sleep(0.5)
                return {"message": {"content": "memory"}}

        config.llm_timeout = 0.05
        router = DomainRouter(SlowClient(), config)

        decision = asyncio.run(router.route("¿cuál es mi color favorito?"))

        assert decision.domain == Domain.CASUAL
        assert decision.error == "timeout"
