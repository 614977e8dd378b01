from __future__ import annotations
from typing import Any, Dict, Optional, Type, Callable
from importlib import import_module


class ProviderRegistry:
    _classes: Dict[str, Type] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[Type], Type]:
        name = name.lower()
        def deco(klass: Type) -> Type:
            cls._classes[name] = klass
            return klass
        return deco

    @classmethod
    def get(cls, name: str) -> Type:
        key = name.lower()
        if key not in cls._classes:
            raise KeyError(f"Provider '{name}' not registered")
        return cls._classes[key]

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in adapters so their @register decorators run.
        Call once at bootstrap before get().
        """
        import_module("chatdeck.providers.openai_compat")
        import_module("chatdeck.providers.gemini")
        import_module("chatdeck.providers.ollama")


def create_provider(
    name: str,
    *,
    secrets,
    providers_cfg: Optional[Dict[str, Any]] = None,
    client=None,
):
    """
    Factory: provider id -> adapter instance.
    Credential absence is not an error here; adapters check it before any network call.
    """
    ProviderRegistry.ensure_imports()
    adapter = ProviderRegistry.get(name)
    provider_cfg = (providers_cfg or {}).get(name.lower(), {}) or {}
    return adapter.create(provider_cfg=provider_cfg, secrets=secrets, client=client)
