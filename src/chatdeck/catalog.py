"""Model catalog: static lists for OpenAI and Gemini, live discovery elsewhere.

Discovery results are kept in an explicit :class:`ModelCache` owned by the
catalog (five minutes by default), so repeated lookups from the UI do not hit
local servers or the Groq API every time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, asdict, field
from typing import Any, Callable, Dict, List, Optional

import httpx
from openai import OpenAI

from chatdeck.providers.specs import PROVIDERS, ProviderId, known_providers

_logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0


@dataclass
class ModelInfo:
    id: str
    name: str
    provider: str
    context_window: Optional[int] = None
    owned_by: Optional[str] = None
    size: Optional[int] = None
    modified: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


_STATIC: Dict[str, List[ModelInfo]] = {
    "openai": [
        ModelInfo("gpt-4o", "GPT-4o", "openai", 128000),
        ModelInfo("gpt-4o-mini", "GPT-4o Mini", "openai", 128000),
        ModelInfo("gpt-4-turbo", "GPT-4 Turbo", "openai", 128000),
        ModelInfo("gpt-4", "GPT-4", "openai", 8192),
        ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo", "openai", 16385),
    ],
    "gemini": [
        ModelInfo("gemini-2.0-flash-exp", "Gemini 2.0 Flash (Experimental)", "gemini", 1000000),
        ModelInfo("gemini-1.5-pro", "Gemini 1.5 Pro", "gemini", 2000000),
        ModelInfo("gemini-1.5-flash", "Gemini 1.5 Flash", "gemini", 1000000),
        ModelInfo("gemini-pro", "Gemini Pro", "gemini", 32768),
    ],
}


@dataclass
class CacheEntry:
    models: List[ModelInfo]
    fetched_at: float


@dataclass
class ModelCache:
    ttl: float = DEFAULT_TTL
    clock: Callable[[], float] = time.monotonic
    entries: Dict[str, CacheEntry] = field(default_factory=dict)

    def get(self, provider: str) -> Optional[List[ModelInfo]]:
        entry = self.entries.get(provider)
        if entry is None:
            return None
        if self.clock() - entry.fetched_at >= self.ttl:
            del self.entries[provider]
            return None
        return entry.models

    def put(self, provider: str, models: List[ModelInfo]) -> None:
        self.entries[provider] = CacheEntry(models=list(models), fetched_at=self.clock())

    def invalidate(self, provider: Optional[str] = None) -> None:
        if provider is None:
            self.entries.clear()
        else:
            self.entries.pop(provider, None)


class ModelCatalog:
    def __init__(
        self,
        secrets,
        *,
        cache: Optional[ModelCache] = None,
        providers_cfg: Optional[Dict[str, Any]] = None,
        http: Optional[httpx.Client] = None,
    ):
        self.secrets = secrets
        self.cache = cache if cache is not None else ModelCache()
        self.providers_cfg = providers_cfg or {}
        self._http = http

    def _base_url(self, provider: ProviderId) -> str:
        cfg = self.providers_cfg.get(provider.value) or {}
        return str(cfg.get("base_url") or PROVIDERS[provider].base_url).rstrip("/")

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=httpx.Timeout(10.0))
        return self._http

    # Discovery

    def _openai_models(self, provider: ProviderId, api_key: str) -> List[ModelInfo]:
        models = []
        with OpenAI(api_key=api_key, base_url=self._base_url(provider), max_retries=0) as client:
            for m in client.models.list():
                context = getattr(m, "context_window", None)
                if context is None and provider is ProviderId.GROQ:
                    context = 8192
                models.append(ModelInfo(
                    id=m.id,
                    name=m.id,
                    provider=provider.value,
                    context_window=context,
                    owned_by=getattr(m, "owned_by", None),
                ))
        return models

    def _ollama_models(self) -> List[ModelInfo]:
        resp = self.http.get(f"{self._base_url(ProviderId.OLLAMA)}/api/tags")
        resp.raise_for_status()
        return [
            ModelInfo(
                id=m["name"],
                name=m["name"],
                provider="ollama",
                size=m.get("size"),
                modified=m.get("modified_at"),
            )
            for m in resp.json().get("models", [])
        ]

    def _discover(self, provider: ProviderId) -> List[ModelInfo]:
        if provider is ProviderId.GROQ:
            api_key = self.secrets.secret("groq")
            if not api_key:
                return []
            return self._openai_models(provider, api_key)
        if provider is ProviderId.LMSTUDIO:
            # LM Studio ignores the key but the SDK insists on one
            return self._openai_models(provider, "lm-studio")
        if provider is ProviderId.OLLAMA:
            return self._ollama_models()
        return []

    def models_for(self, provider: str) -> List[ModelInfo]:
        pid = ProviderId(provider.lower())
        if pid.value in _STATIC:
            return list(_STATIC[pid.value]) if self.secrets.secret(pid.value) else []

        cached = self.cache.get(pid.value)
        if cached is not None:
            return cached
        try:
            models = self._discover(pid)
        except Exception as e:
            _logger.error("Error fetching %s models: %s", PROVIDERS[pid].display_name, e)
            return []
        if models:
            self.cache.put(pid.value, models)
        return models

    def all_models(self) -> Dict[str, List[ModelInfo]]:
        return {name: self.models_for(name) for name in known_providers()}

    def refresh(self, provider: Optional[str] = None) -> Dict[str, List[ModelInfo]]:
        self.cache.invalidate(provider)
        return self.all_models()
