from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StreamEvent:
    """
    One decoded increment of a provider stream.
    text may only be empty on usage frames that carry reasoning_tokens.
    """
    text: str
    is_reasoning: bool = False
    reasoning_tokens: Optional[int] = None


@dataclass(frozen=True)
class StreamResult:
    answer_text: str
    reasoning_text: str
    reasoning_tokens: int
    elapsed_ms: int
