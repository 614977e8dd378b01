from __future__ import annotations
from typing import Any, Dict, Iterable, Iterator, List

from chatdeck.core.events import StreamEvent
from chatdeck.core.ports import Message
from .base import HTTPStreamProvider
from .framing import iter_lines, parse_json_line
from .registry import ProviderRegistry
from .specs import PROVIDERS, ProviderId

_ROLES = {"assistant": "model", "user": "user"}


@ProviderRegistry.register("gemini")
class GeminiProvider(HTTPStreamProvider):
    """
    streamGenerateContent with the key in the query string.
    Frames are one JSON object per line; parts flagged thought=true are thinking text.
    """

    spec = PROVIDERS[ProviderId.GEMINI]
    framing = "ndjson"

    def _request(self, conversation: List[Message], model_id: str) -> Dict[str, Any]:
        contents = [
            {"role": _ROLES.get(m["role"], "user"), "parts": [{"text": m["content"]}]}
            for m in conversation
        ]
        return {
            "url": f"{self.base_url}/models/{model_id}:streamGenerateContent",
            "params": {"key": self.api_key},
            "headers": {"Content-Type": "application/json"},
            "json": {"contents": contents},
        }

    def _frames(self, chunks: Iterable[bytes]) -> Iterator[Dict[str, Any]]:
        # Without alt=sse the objects arrive wrapped in a JSON array: drop the
        # brackets and separators so each line stands alone.
        for line in iter_lines(chunks):
            data = parse_json_line(line.strip().lstrip("[,").rstrip(",]"))
            if data is not None:
                yield data

    def _parse_frame(self, data: Dict[str, Any]) -> Iterator[StreamEvent]:
        candidates = data.get("candidates")
        candidate = candidates[0] if isinstance(candidates, list) and candidates else None
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        for part in parts if isinstance(parts, list) else []:
            if not isinstance(part, dict):
                continue
            text = part.get("text") or ""
            if isinstance(text, str) and text:
                yield StreamEvent(text, is_reasoning=bool(part.get("thought")))

        usage = data.get("usageMetadata")
        thoughts = usage.get("thoughtsTokenCount") if isinstance(usage, dict) else None
        if isinstance(thoughts, int):
            yield StreamEvent("", reasoning_tokens=thoughts)
