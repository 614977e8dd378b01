# src/chatdeck/search.py
from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from chatdeck.core.errors import MissingCredentialError, TransportError

_logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"


class TavilyClient:
    """Single-shot web search used to add context to a user message."""

    def __init__(self, api_key: Optional[str], *, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def search(self, query: str) -> Dict[str, Any]:
        if not self.api_key:
            raise MissingCredentialError("Tavily API key missing")
        try:
            resp = self._client.post(
                TAVILY_URL,
                json={
                    "api_key": self.api_key,
                    "query": query,
                    "search_depth": "basic",
                    "include_answer": True,
                    "max_results": 5,
                },
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Tavily search failed: {e}") from e
        if resp.status_code >= 400:
            raise TransportError("Tavily search failed", status_code=resp.status_code)
        return resp.json()


def format_results(results: List[Dict[str, Any]]) -> str:
    trimmed = [
        {"title": r.get("title"), "content": r.get("content"), "url": r.get("url")}
        for r in results
    ]
    return "\n\nWeb Search Results:\n" + json.dumps(trimmed, ensure_ascii=False)


def augment_message(user_text: str, results: List[Dict[str, Any]]) -> str:
    return user_text + "\n\nContext from Web Search:" + format_results(results)


def try_augment(user_text: str, client) -> str:
    """
    Best effort: any failure leaves the message as typed.
    """
    try:
        payload = client.search(user_text)
        results = payload.get("results") or []
    except Exception as e:
        _logger.warning("Web search failed, sending message without context: %s", e)
        return user_text
    if not results:
        return user_text
    return augment_message(user_text, results)
