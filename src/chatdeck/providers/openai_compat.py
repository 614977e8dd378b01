# src/chatdeck/providers/openai_compat.py
from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional

from chatdeck.core.events import StreamEvent
from chatdeck.core.ports import Message
from .base import HTTPStreamProvider
from .registry import ProviderRegistry
from .specs import PROVIDERS, ProviderId


def _reasoning_tokens(usage: Any) -> Optional[int]:
    """
    Reasoning token counts live in different places depending on the backend:
    usage.reasoning_tokens or usage.completion_tokens_details.reasoning_tokens.
    """
    if not isinstance(usage, dict):
        return None
    count = usage.get("reasoning_tokens")
    if count is None:
        details = usage.get("completion_tokens_details") or {}
        count = details.get("reasoning_tokens") if isinstance(details, dict) else None
    try:
        return int(count) if count is not None else None
    except (TypeError, ValueError):
        return None


class OpenAICompatibleProvider(HTTPStreamProvider):
    """
    Chat Completions over server-sent events:
    - delta.content is answer text
    - delta.reasoning / delta.reasoning_content is thinking text
    """

    framing = "sse"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, conversation: List[Message], model_id: str) -> Dict[str, Any]:
        return {
            "url": f"{self.base_url}/chat/completions",
            "headers": self._headers(),
            "json": {
                "model": model_id,
                "messages": [{"role": m["role"], "content": m["content"]} for m in conversation],
                "stream": True,
            },
        }

    def _parse_frame(self, data: Dict[str, Any]) -> Iterator[StreamEvent]:
        choices = data.get("choices")
        choice = choices[0] if isinstance(choices, list) and choices else None
        delta = choice.get("delta") if isinstance(choice, dict) else None
        if not isinstance(delta, dict):
            delta = {}

        reasoning = delta.get("reasoning") or delta.get("reasoning_content") or ""
        if isinstance(reasoning, str) and reasoning:
            yield StreamEvent(reasoning, is_reasoning=True)
        content = delta.get("content") or ""
        if isinstance(content, str) and content:
            yield StreamEvent(content)

        tokens = _reasoning_tokens(data.get("usage"))
        if tokens is not None:
            yield StreamEvent("", reasoning_tokens=tokens)


@ProviderRegistry.register("openai")
class OpenAIProvider(OpenAICompatibleProvider):
    spec = PROVIDERS[ProviderId.OPENAI]


@ProviderRegistry.register("groq")
class GroqProvider(OpenAICompatibleProvider):
    spec = PROVIDERS[ProviderId.GROQ]


@ProviderRegistry.register("lmstudio")
class LMStudioProvider(OpenAICompatibleProvider):
    """LM Studio serves whichever model is loaded; any model id is accepted."""
    spec = PROVIDERS[ProviderId.LMSTUDIO]
    fallback_error = "API error - is LM Studio running with a model loaded?"
