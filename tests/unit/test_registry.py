# tests/unit/test_registry.py

from __future__ import annotations
import sys
from pathlib import Path

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from chatdeck.providers.registry import ProviderRegistry, create_provider  # type: ignore
from chatdeck.providers.specs import PROVIDERS, ProviderId, known_providers
from chatdeck.secrets.sources import SecretsResolver


def test_registry_register_and_get():
    @ProviderRegistry.register("Dummy")
    class DummyProvider:
        @classmethod
        def create(cls, *, provider_cfg, secrets, client=None):
            return cls()
        def stream_events(self, conversation, model_id):
            yield from ()

    # Case-insensitive lookup
    cls_lower = ProviderRegistry.get("dummy")
    cls_upper = ProviderRegistry.get("DUMMY")
    assert cls_lower is DummyProvider
    assert cls_upper is DummyProvider

def test_registry_unknown_raises():
    try:
        ProviderRegistry.get("does-not-exist")
        assert False, "Expected KeyError"
    except KeyError:
        pass

def test_every_provider_id_has_an_adapter():
    ProviderRegistry.ensure_imports()
    for pid in ProviderId:
        adapter = ProviderRegistry.get(pid.value)
        assert adapter.spec is PROVIDERS[pid]

def test_create_provider_wires_credentials_and_config():
    secrets = SecretsResolver(method=[], explicit={"groq": "gk", "ollama": "ignored"})
    groq = create_provider("GROQ", secrets=secrets, providers_cfg={"groq": {"timeout": 5}})
    assert groq.name == "groq"
    assert groq.api_key == "gk"
    assert groq.timeout == 5.0

    ollama = create_provider("ollama", secrets=secrets,
                             providers_cfg={"ollama": {"base_url": "http://gpu-box:11434/"}})
    assert ollama.api_key is None  # local providers never read a key
    assert ollama.base_url == "http://gpu-box:11434"

def test_provider_flags():
    gemini = PROVIDERS[ProviderId.GEMINI]
    lmstudio = PROVIDERS[ProviderId("lmstudio")]
    assert gemini.needs_credential and not gemini.is_local
    assert lmstudio.is_local and not lmstudio.needs_credential
    assert known_providers() == ["openai", "groq", "gemini", "ollama", "lmstudio"]
