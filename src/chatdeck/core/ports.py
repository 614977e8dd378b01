from __future__ import annotations
from typing import Protocol, Iterator, Callable, List, Dict, Literal

from .events import StreamEvent

Role = Literal["user", "assistant"]
# Canonical conversation turn: {'role': 'user'|'assistant', 'content': '...'}
Message = Dict[str, str]
EventCallback = Callable[[StreamEvent], None]


class ChatProvider(Protocol):
    """
    Interface the core uses to talk to any LLM backend.
    """

    # Registry name, e.g. 'groq'
    name: str

    def stream_events(self, conversation: List[Message], model_id: str) -> Iterator[StreamEvent]:
        """
        Streaming call. Yields canonical events as frames are decoded.
        Finite, single consumer; closing the iterator releases the connection.
        """
        ...

    def stream_chat(self, conversation: List[Message], on_event: EventCallback, model_id: str) -> None:
        """
        Callback form of stream_events(). Returns once the provider signals completion.
        """
        ...


class SearchClient(Protocol):
    """What ChatSession needs from a web search backend."""

    def search(self, query: str) -> Dict[str, List[Dict[str, str]]]:
        """Returns {'results': [{'title', 'content', 'url'}, ...]}."""
        ...

    def close(self) -> None:
        ...
