# src/chatdeck/artifacts.py
from __future__ import annotations
import re
import time
import uuid
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Artifact:
    id: str
    type: str            # "html" | "react" | "svg"
    language: str
    content: str
    title: str
    created_at: int      # epoch millis

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Artifact":
        return cls(
            id=str(d["id"]),
            type=str(d["type"]),
            language=str(d.get("language", d["type"])),
            content=str(d.get("content", "")),
            title=str(d.get("title", "")),
            created_at=int(d.get("created_at", 0)),
        )

    def with_content(self, content: str) -> "Artifact":
        return replace(self, content=content)


@dataclass(frozen=True)
class _Kind:
    type: str
    language: str
    title: str
    pattern: re.Pattern


# Priority order: first kind with a match wins; within a kind only the first block counts.
_KINDS: List[_Kind] = [
    _Kind("html", "html", "HTML Preview", re.compile(r"```html[ \t]*\r?\n(.*?)```", re.DOTALL)),
    _Kind("react", "jsx", "React Component", re.compile(r"```(?:jsx|react)[ \t]*\r?\n(.*?)```", re.DOTALL)),
    _Kind("svg", "svg", "SVG Graphics", re.compile(r"```svg[ \t]*\r?\n(.*?)```", re.DOTALL)),
]


def _find(answer_text: str) -> Optional[Tuple[_Kind, re.Match]]:
    for kind in _KINDS:
        m = kind.pattern.search(answer_text or "")
        if m:
            return kind, m
    return None


def _new_id() -> str:
    return uuid.uuid4().hex


def _build(kind: _Kind, m: re.Match) -> Artifact:
    return Artifact(
        id=_new_id(),
        type=kind.type,
        language=kind.language,
        content=m.group(1),
        title=kind.title,
        created_at=int(time.time() * 1000),
    )


def extract_artifact(answer_text: str) -> Optional[Artifact]:
    """Return the artifact for the first recognised fenced block, or None."""
    found = _find(answer_text)
    return _build(*found) if found else None


def placeholder(artifact: Artifact) -> str:
    return f'\n\n:::artifact{{id="{artifact.id}" title="{artifact.title}" type="{artifact.type}"}}\n\n'


def split_artifact(answer_text: str) -> Tuple[str, Optional[Artifact]]:
    """
    Extract the artifact and swap the matched block for a placeholder so the
    transcript does not repeat the code. Other blocks are left untouched.
    """
    found = _find(answer_text)
    if found is None:
        return answer_text, None
    artifact = _build(*found)
    m = found[1]
    display = answer_text[:m.start()] + placeholder(artifact) + answer_text[m.end():]
    return display, artifact
