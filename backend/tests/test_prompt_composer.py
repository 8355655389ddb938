"""
Tests for the layered prompt composer.
"""

import pytest

from routers import chat_prompts as prompts
from routers.chat_orchestration.domain_router import Domain
from routers.chat_orchestration.prompt_composer import (
    LAYER_SEPARATOR,
    compose,
    compose_layers,
    state_layer,
)
from routers.chat_orchestration.state_machine import ConversationState
from services.store import Identity

ANA = Identity(id=7, display_name="Ana", secret_code="4321")


class TestLayerOrder:
    """core rules → tool rules → state → domain → dynamic context."""

    def test_order(self):
        layers = compose_layers(ConversationState.UNAUTHENTICATED, Domain.CASUAL, dynamic_context="ctx")
        assert layers == [
            prompts.CORE_RULES,
            prompts.TOOL_RULES,
            prompts.UNAUTHENTICATED_PROMPT,
            prompts.CASUAL_PROMPT,
            "ctx",
        ]

    def test_compose_joins_layers(self):
        text = compose(ConversationState.REGISTERING, Domain.AUTHENTICATION)
        assert text == LAYER_SEPARATOR.join(
            [prompts.CORE_RULES, prompts.TOOL_RULES, prompts.REGISTERING_PROMPT, prompts.AUTH_PROMPT]
        )

    def test_blank_dynamic_context_is_omitted(self):
        assert len(compose_layers(ConversationState.UNAUTHENTICATED, Domain.CASUAL, dynamic_context="  \n")) == 4

    def test_deterministic(self):
        a = compose(ConversationState.AUTHENTICATED, Domain.MEMORY, ANA, "x")
        b = compose(ConversationState.AUTHENTICATED, Domain.MEMORY, ANA, "x")
        assert a == b


class TestStateLayer:
    """Each state picks its own layer."""

    @pytest.mark.parametrize(
        "state, expected",
        [
            (ConversationState.UNAUTHENTICATED, prompts.UNAUTHENTICATED_PROMPT),
            (ConversationState.REGISTERING, prompts.REGISTERING_PROMPT),
            (ConversationState.LOGGING_IN, prompts.LOGGING_IN_PROMPT),
            (ConversationState.LOGGING_OUT, prompts.LOGGING_OUT_PROMPT),
            (ConversationState.NO_SESSION, prompts.NO_SESSION_PROMPT),
        ],
    )
    def test_static_layers(self, state, expected):
        assert state_layer(state, None) == expected

    def test_authenticated_includes_identity(self):
        layer = state_layer(ConversationState.AUTHENTICATED, ANA)
        assert "Nombre: Ana" in layer
        assert "Código: 4321" in layer

    def test_authenticated_requires_identity(self):
        with pytest.raises(ValueError):
            state_layer(ConversationState.AUTHENTICATED, None)


class TestDomainLayer:
    @pytest.mark.parametrize(
        "domain, expected",
        [
            (Domain.MEMORY, prompts.MEMORY_PROMPT),
            (Domain.AUTHENTICATION, prompts.AUTH_PROMPT),
            (Domain.CASUAL, prompts.CASUAL_PROMPT),
        ],
    )
    def test_domain_layers(self, domain, expected):
        assert compose_layers(ConversationState.UNAUTHENTICATED, domain)[3] == expected


class TestAuxiliaryPrompts:
    """Dynamic context wrapper and uploaded files note."""

    def test_wrap_dynamic_context(self):
        wrapped = prompts.wrap_dynamic_context("  Ana tiene un perro.  ")
        assert wrapped.startswith(prompts.DYNAMIC_CONTEXT_HEADER)
        assert "Ana tiene un perro." in wrapped
        assert wrapped.endswith(prompts.DYNAMIC_CONTEXT_FOOTER)
        assert prompts.wrap_dynamic_context("   ") == ""

    def test_uploaded_files_message(self):
        note = prompts.build_uploaded_files_message(
            [{"fileName": "informe.pdf", "openaiFileId": "file-1", "documentId": "doc-9"}]
        )
        assert note.startswith("El usuario subió los siguientes archivos:")
        assert "informe.pdf" in note and "file-1" in note and "doc-9" in note
        assert prompts.build_uploaded_files_message([]) == ""
