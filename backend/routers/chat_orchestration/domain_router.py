"""
Domain Router - Classifies a message into memory / authentication / casual.

Two stages:
1. Heuristic fast path: messages that refer back to earlier output
   ("dame la lista", "lo que me dijiste antes") are casual, no model call.
2. One constrained completion call answering with a single word.

Classification never fails a turn: any error degrades to casual.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..chat_prompts import DOMAIN_CLASSIFIER_PROMPT

logger = logging.getLogger(__name__)


class Domain(str, Enum):
    MEMORY = "memory"
    AUTHENTICATION = "authentication"
    CASUAL = "casual"


# References to earlier conversation output, Spanish and English
PRIOR_OUTPUT_PATTERN = re.compile(
    r"\b(dame|necesito|genera|escrib[ií]|me dijiste|dijiste|que dijiste|antes|reci[eé]n|"
    r"hace un rato|la lista|que escribiste|que me diste|"
    r"give me|you said|you told me|earlier|that list|you wrote)\b",
    re.IGNORECASE,
)


@dataclass
class DomainDecision:
    """Result from the domain router."""

    domain: Domain = Domain.CASUAL
    fast_path: bool = False
    latency_ms: float = 0.0
    error: Optional[str] = None


def references_prior_output(text: str) -> bool:
    return bool(PRIOR_OUTPUT_PATTERN.search(text or ""))


def parse_label(raw: str) -> Domain:
    """Map a free-form model answer to a Domain; anything unexpected is casual."""
    label = re.sub(r"[^a-z]", "", (raw or "").strip().lower())
    if label == Domain.MEMORY.value:
        return Domain.MEMORY
    if label == Domain.AUTHENTICATION.value:
        return Domain.AUTHENTICATION
    return Domain.CASUAL


class DomainRouter:
    """Routes messages to a semantic domain.

    Usage:
        router = DomainRouter(llm_client, runtime_config)
        domain = await router.classify("¿de qué color es el auto de mi tío?")
    """

    def __init__(self, client, runtime_config):
        self.client = client
        self.runtime_config = runtime_config

    async def route(self, text: str) -> DomainDecision:
        start = time.time()

        if references_prior_output(text):
            return DomainDecision(domain=Domain.CASUAL, fast_path=True)

        model = self.runtime_config.model_router
        messages = [
            {"role": "system", "content": DOMAIN_CLASSIFIER_PROMPT},
            {"role": "user", "content": text},
        ]
        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    lambda: self.client.chat(
                        model=model,
                        messages=messages,
                        options={"temperature": 0, "max_tokens": 5},
                    ),
                ),
                timeout=self.runtime_config.llm_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Domain classification timed out (model={model}); using casual")
            return DomainDecision(error="timeout", latency_ms=(time.time() - start) * 1000)
        except Exception as e:
            logger.warning(f"Domain classification failed ({type(e).__name__}: {e}); using casual")
            return DomainDecision(error=str(e), latency_ms=(time.time() - start) * 1000)

        raw = response.get("message", {}).get("content", "")
        domain = parse_label(raw)
        latency_ms = (time.time() - start) * 1000
        logger.debug(f"Domain classified as {domain.value} ({latency_ms:.0f}ms, raw={raw!r})")
        return DomainDecision(domain=domain, latency_ms=latency_ms)

    async def classify(self, text: str) -> Domain:
        decision = await self.route(text)
        return decision.domain
