# tests/unit/test_search.py

from __future__ import annotations
import json
import logging
import sys
from pathlib import Path

import httpx
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from chatdeck.core.errors import MissingCredentialError, TransportError
from chatdeck.search import TavilyClient, augment_message, try_augment

RESULTS = [{"title": "T", "content": "C", "url": "https://x.test", "score": 0.9}]


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_search_request_body():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"results": RESULTS})

    out = TavilyClient("tv-key", client=_client(handler)).search("weather")
    assert out["results"][0]["title"] == "T"
    assert seen == [{
        "api_key": "tv-key",
        "query": "weather",
        "search_depth": "basic",
        "include_answer": True,
        "max_results": 5,
    }]


def test_search_without_key_raises_before_request():
    calls = []
    client = TavilyClient(None, client=_client(lambda r: calls.append(r)))
    with pytest.raises(MissingCredentialError):
        client.search("q")
    assert calls == []


def test_search_non_ok_raises():
    client = TavilyClient("k", client=_client(lambda r: httpx.Response(500)))
    with pytest.raises(TransportError, match="Tavily search failed"):
        client.search("q")


def test_augment_message_keeps_only_title_content_url():
    text = augment_message("hi", RESULTS)
    assert text.startswith("hi\n\nContext from Web Search:\n\nWeb Search Results:\n")
    payload = json.loads(text.split("Web Search Results:\n", 1)[1])
    assert payload == [{"title": "T", "content": "C", "url": "https://x.test"}]


def test_try_augment_is_non_fatal(caplog):
    class Broken:
        def search(self, query):
            raise TransportError("Tavily search failed")

    with caplog.at_level(logging.WARNING, logger="chatdeck.search"):
        assert try_augment("hello", Broken()) == "hello"
    assert "Web search failed" in caplog.text


def test_close_leaves_injected_client_open():
    injected = _client(lambda request: httpx.Response(200, json={"results": []}))
    TavilyClient("tv", client=injected).close()
    assert not injected.is_closed

    own = TavilyClient("tv")
    own.close()
    assert own._client.is_closed
