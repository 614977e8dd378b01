from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict


class ProviderId(str, Enum):
    OPENAI = "openai"
    GROQ = "groq"
    GEMINI = "gemini"
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"


@dataclass(frozen=True)
class ProviderSpec:
    id: ProviderId
    display_name: str
    needs_credential: bool
    is_local: bool
    base_url: str
    default_model: str


PROVIDERS: Dict[ProviderId, ProviderSpec] = {
    ProviderId.OPENAI: ProviderSpec(
        ProviderId.OPENAI, "OpenAI", True, False,
        "https://api.openai.com/v1", "gpt-4o",
    ),
    ProviderId.GROQ: ProviderSpec(
        ProviderId.GROQ, "Groq", True, False,
        "https://api.groq.com/openai/v1", "llama-3.3-70b-versatile",
    ),
    ProviderId.GEMINI: ProviderSpec(
        ProviderId.GEMINI, "Gemini", True, False,
        "https://generativelanguage.googleapis.com/v1beta", "gemini-1.5-flash",
    ),
    ProviderId.OLLAMA: ProviderSpec(
        ProviderId.OLLAMA, "Ollama", False, True,
        "http://localhost:11434", "llama2",
    ),
    ProviderId.LMSTUDIO: ProviderSpec(
        ProviderId.LMSTUDIO, "LM Studio", False, True,
        "http://localhost:1234/v1", "local-model",
    ),
}


def known_providers() -> list[str]:
    return [p.value for p in ProviderId]
