"""
Context Builder - dynamic context layer for authenticated callers.

Fetches recent history and stored memories in parallel and asks the
context model for a short natural-language summary relevant to the
current message. The summary is wrapped as one extra instruction layer.

Failures never abort a turn: a failed or disabled summary falls back to
a plain listing of stored memories, or to no layer at all.

Usage:
    builder = ContextBuilder(llm_client, store, runtime_config)
    layer = await builder.build(identity, "¿cómo se llama mi perro?")
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional

from routers.chat_prompts import CONTEXT_SUMMARY_PROMPT, wrap_dynamic_context

from .store import ChatStore, Identity, MessageRecord

logger = logging.getLogger(__name__)

NO_MEMORIES_TEXT = "(no hay memorias guardadas)"
NO_HISTORY_TEXT = "(no hay historial previo)"


def format_memories(memories: Dict[str, str]) -> str:
    return "\n".join(f"{key}: {value}" for key, value in memories.items())


def format_history(messages: List[MessageRecord]) -> str:
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


class ContextBuilder:
    """Builds the dynamic context layer for one turn."""

    def __init__(self, client, store: ChatStore, runtime_config):
        self.client = client
        self.store = store
        self.runtime_config = runtime_config

    async def build(self, identity: Optional[Identity], query: str) -> str:
        """Dynamic context layer text, or "" when there is nothing useful."""
        if identity is None:
            return ""

        history, memories = await asyncio.gather(
            self.store.alast_messages(identity.id, self.runtime_config.context_history_limit),
            self.store.alist_memories(identity.id),
        )
        if not history and not memories:
            return ""

        if not self.runtime_config.context_summary_enabled:
            return wrap_dynamic_context(format_memories(memories))

        try:
            summary = await self._summarize(query, history, memories)
        except asyncio.TimeoutError:
            logger.warning("Context summary timed out; using stored memories only")
            return wrap_dynamic_context(format_memories(memories))
        except Exception as e:
            logger.warning(f"Context summary failed ({type(e).__name__}: {e}); using stored memories only")
            return wrap_dynamic_context(format_memories(memories))

        return wrap_dynamic_context(summary)

    async def _summarize(self, query: str, history: List[MessageRecord], memories: Dict[str, str]) -> str:
        model = self.runtime_config.model_context
        material = (
            f"MEMORIAS DEL USUARIO:\n{format_memories(memories) or NO_MEMORIES_TEXT}\n\n"
            f"HISTORIAL RECIENTE:\n{format_history(history) or NO_HISTORY_TEXT}"
        )
        messages = [
            {"role": "system", "content": CONTEXT_SUMMARY_PROMPT},
            {"role": "assistant", "content": material},
            {"role": "user", "content": f'Generá contexto para responder: "{query}"'},
        ]

        start = time.time()
        loop = asyncio.get_running_loop()
        response = await asyncio.wait_for(
            loop.run_in_executor(
                None,
                lambda: self.client.chat(
                    model=model,
                    messages=messages,
                    options={"temperature": 0, "max_tokens": 200},
                ),
            ),
            timeout=self.runtime_config.llm_timeout,
        )
        summary = (response.get("message", {}).get("content") or "").strip()
        logger.debug(f"Context summary built in {time.time() - start:.2f}s ({len(summary)} chars)")
        return summary
