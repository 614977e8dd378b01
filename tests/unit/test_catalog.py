# tests/unit/test_catalog.py

from __future__ import annotations
import sys
from pathlib import Path
from types import SimpleNamespace

import httpx

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import chatdeck.catalog as cat  # type: ignore
from chatdeck.catalog import ModelCache, ModelCatalog, ModelInfo


class FakeSecrets:
    def __init__(self, **keys):
        self.keys = keys

    def secret(self, provider, name="api_key"):
        return self.keys.get(provider)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


# -------- fake OpenAI SDK (models endpoint only) --------

class _FakeModels:
    def __init__(self, parent):
        self.parent = parent

    def list(self):
        _FakeOpenAI.calls.append(self.parent.kwargs)
        if _FakeOpenAI.fail:
            raise RuntimeError("boom")
        return [
            SimpleNamespace(id="llama-3.3-70b-versatile", owned_by="Meta", context_window=131072),
            SimpleNamespace(id="whisper", owned_by="OpenAI"),
        ]


class _FakeOpenAI:
    calls = []
    fail = False
    closed = 0

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.models = _FakeModels(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        _FakeOpenAI.closed += 1
        return False


def _ollama_http(counter):
    def handler(request):
        counter.append(str(request.url))
        return httpx.Response(200, json={"models": [
            {"name": "llama3:8b", "size": 4_000_000_000, "modified_at": "2024-05-01T00:00:00Z"},
        ]})
    return httpx.Client(transport=httpx.MockTransport(handler))


def _reset_fake(monkeypatch):
    _FakeOpenAI.calls = []
    _FakeOpenAI.fail = False
    _FakeOpenAI.closed = 0
    monkeypatch.setattr(cat, "OpenAI", _FakeOpenAI, raising=True)


def test_cache_ttl_and_invalidate():
    clock = FakeClock()
    cache = ModelCache(ttl=300, clock=clock)
    models = [ModelInfo("a", "a", "ollama")]
    cache.put("ollama", models)

    clock.now += 299
    assert cache.get("ollama") == models
    clock.now += 1
    assert cache.get("ollama") is None

    cache.put("ollama", models)
    cache.put("groq", models)
    cache.invalidate("ollama")
    assert cache.get("ollama") is None and cache.get("groq") == models
    cache.invalidate()
    assert cache.entries == {}


def test_static_lists_need_a_credential():
    catalog = ModelCatalog(FakeSecrets(openai="sk"))
    assert [m.id for m in catalog.models_for("openai")][:2] == ["gpt-4o", "gpt-4o-mini"]
    assert catalog.models_for("gemini") == []


def test_groq_discovery_uses_openai_sdk_and_is_cached(monkeypatch):
    _reset_fake(monkeypatch)
    clock = FakeClock()
    catalog = ModelCatalog(FakeSecrets(groq="gk"), cache=ModelCache(ttl=300, clock=clock))

    first = catalog.models_for("groq")
    assert [m.id for m in first] == ["llama-3.3-70b-versatile", "whisper"]
    assert first[0].context_window == 131072
    assert first[1].context_window == 8192  # default when the API omits it
    assert _FakeOpenAI.calls[0]["base_url"] == "https://api.groq.com/openai/v1"
    assert _FakeOpenAI.calls[0]["max_retries"] == 0

    catalog.models_for("groq")
    assert len(_FakeOpenAI.calls) == 1

    clock.now += 301
    catalog.models_for("groq")
    assert len(_FakeOpenAI.calls) == 2


def test_groq_without_key_skips_discovery(monkeypatch):
    _reset_fake(monkeypatch)
    assert ModelCatalog(FakeSecrets()).models_for("groq") == []
    assert _FakeOpenAI.calls == []


def test_discovery_failure_returns_empty_and_is_not_cached(monkeypatch, caplog):
    _reset_fake(monkeypatch)
    _FakeOpenAI.fail = True
    catalog = ModelCatalog(FakeSecrets())
    assert catalog.models_for("lmstudio") == []
    assert "Error fetching LM Studio models" in caplog.text
    assert catalog.cache.get("lmstudio") is None


def test_ollama_discovery_via_http():
    hits = []
    catalog = ModelCatalog(FakeSecrets(), http=_ollama_http(hits))
    models = catalog.models_for("ollama")
    assert [(m.id, m.size) for m in models] == [("llama3:8b", 4_000_000_000)]
    assert hits == ["http://localhost:11434/api/tags"]

    catalog.models_for("ollama")
    assert len(hits) == 1
    catalog.refresh("ollama")
    assert len(hits) == 2


def test_all_models_has_every_provider(monkeypatch):
    _reset_fake(monkeypatch)
    _FakeOpenAI.fail = True
    hits = []
    listing = ModelCatalog(FakeSecrets(gemini="g"), http=_ollama_http(hits)).all_models()
    assert set(listing) == {"openai", "groq", "gemini", "ollama", "lmstudio"}
    assert listing["openai"] == []
    assert listing["gemini"][0].id == "gemini-2.0-flash-exp"
    assert listing["ollama"][0].to_dict() == {
        "id": "llama3:8b", "name": "llama3:8b", "provider": "ollama",
        "size": 4_000_000_000, "modified": "2024-05-01T00:00:00Z",
    }


def test_discovery_client_is_closed_even_on_failure(monkeypatch):
    _reset_fake(monkeypatch)
    catalog = ModelCatalog(FakeSecrets(groq="gk"))
    catalog.models_for("groq")
    assert _FakeOpenAI.closed == 1

    _FakeOpenAI.fail = True
    assert catalog.models_for("lmstudio") == []
    assert _FakeOpenAI.closed == 2
