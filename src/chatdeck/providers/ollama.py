from __future__ import annotations
from typing import Any, Dict, Iterator, List

from chatdeck.core.events import StreamEvent
from chatdeck.core.ports import Message
from .base import HTTPStreamProvider
from .registry import ProviderRegistry
from .specs import PROVIDERS, ProviderId


@ProviderRegistry.register("ollama")
class OllamaProvider(HTTPStreamProvider):
    """Native /api/chat: flat message.content frames, message.thinking for reasoning models."""

    spec = PROVIDERS[ProviderId.OLLAMA]
    framing = "ndjson"
    fallback_error = "API error - is Ollama running?"

    def _request(self, conversation: List[Message], model_id: str) -> Dict[str, Any]:
        return {
            "url": f"{self.base_url}/api/chat",
            "headers": {"Content-Type": "application/json"},
            "json": {
                "model": model_id,
                "messages": [{"role": m["role"], "content": m["content"]} for m in conversation],
                "stream": True,
            },
        }

    def _parse_frame(self, data: Dict[str, Any]) -> Iterator[StreamEvent]:
        message = data.get("message")
        if not isinstance(message, dict):
            return
        thinking = message.get("thinking") or ""
        if isinstance(thinking, str) and thinking:
            yield StreamEvent(thinking, is_reasoning=True)
        content = message.get("content") or ""
        if isinstance(content, str) and content:
            yield StreamEvent(content)

    def _is_final(self, data: Dict[str, Any]) -> bool:
        return bool(data.get("done"))
