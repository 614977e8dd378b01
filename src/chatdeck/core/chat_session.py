from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional

from chatdeck.artifacts import split_artifact
from chatdeck.search import try_augment
from .aggregator import CancelToken, StreamAggregator, fold_events
from .errors import ProviderError, SessionBusyError, StreamCancelled
from .events import StreamResult
from .ports import EventCallback, Message, SearchClient

_logger = logging.getLogger(__name__)

NO_SELECTION_MESSAGE = "Please select a provider and model in Settings to start chatting."


def _close(resource: Any) -> None:
    close = getattr(resource, "close", None)
    if close is not None:
        close()


class ChatSession:
    """
    Drives one chat: user message -> optional web search -> provider stream -> stored reply.
    Only one send may be in flight at a time. The reply always lands in the chat
    the send was started for, even if another chat is opened meanwhile.
    """

    def __init__(
        self,
        store,
        secrets,
        *,
        provider_factory: Callable[[str], Any],
        search_enabled: bool = False,
        search_client_factory: Optional[Callable[[str], SearchClient]] = None,
    ):
        self.store = store
        self.secrets = secrets
        self.provider_factory = provider_factory
        self.search_enabled = search_enabled
        self.search_client_factory = search_client_factory
        self._in_flight = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def _acquire(self) -> None:
        if not self._in_flight.acquire(blocking=False):
            raise SessionBusyError("A message is already being answered")

    def _search_context(self, user_text: str) -> str:
        if not self.search_enabled or self.search_client_factory is None:
            return user_text
        api_key = self.secrets.secret("tavily")
        if not api_key:
            return user_text
        client = self.search_client_factory(api_key)
        try:
            return try_augment(user_text, client)
        finally:
            _close(client)

    def _outgoing_messages(self, user_text: str, chat_id: str) -> List[Message]:
        # History before this turn, then the (possibly augmented) user message
        messages = self.store.conversation(chat_id)[:-1]
        messages.append({"role": "user", "content": self._search_context(user_text)})
        return messages

    def _reply(self, chat_id: str, content: str, **metadata: Any) -> Dict[str, Any]:
        message = self.store.add_message("assistant", content, chat_id=chat_id, **metadata)
        return {"message": message, "artifact": None}

    def _finish(self, chat_id: str, result: StreamResult) -> Dict[str, Any]:
        display, artifact = split_artifact(result.answer_text)
        metadata: Dict[str, Any] = {}
        if result.reasoning_text:
            metadata = {
                "thinking": result.reasoning_text,
                "thinking_tokens": result.reasoning_tokens,
                "duration_ms": result.elapsed_ms,
            }
        if artifact is not None:
            self.store.add_artifact(artifact, chat_id=chat_id)
        out = self._reply(chat_id, display, **metadata)
        out["artifact"] = artifact.to_dict() if artifact else None
        return out

    def _fail(self, chat_id: str, exc: Exception) -> Dict[str, Any]:
        _logger.error("Chat request failed: %s", exc)
        return self._reply(chat_id, f"Error: {exc}")

    def _prepare(self, user_text: str, chat_id: str):
        self.store.add_message("user", user_text, chat_id=chat_id)
        messages = self._outgoing_messages(user_text, chat_id)
        provider_name = self.store.selected_provider
        model_id = self.store.selected_model
        if not provider_name or not model_id:
            return None, messages, model_id
        try:
            provider = self.provider_factory(provider_name)
        except KeyError as e:
            raise ProviderError(str(e.args[0]) if e.args else str(e)) from e
        return provider, messages, model_id

    def send(
        self,
        user_text: str,
        on_event: Optional[EventCallback] = None,
        cancel: Optional[CancelToken] = None,
        chat_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Returns {'message': <stored assistant message>, 'artifact': <dict|None>}.
        Provider failures become an 'Error: ...' assistant message; a cancelled
        stream stores nothing and raises StreamCancelled.
        chat_id defaults to the current chat.
        """
        self._acquire()
        chat_id = chat_id or self.store.current_chat_id
        provider = None
        try:
            try:
                provider, messages, model_id = self._prepare(user_text, chat_id)
                if provider is None:
                    return self._reply(chat_id, NO_SELECTION_MESSAGE)
                aggregator = StreamAggregator(on_event)
                events = provider.stream_events(messages, model_id)
                result = fold_events(events, aggregator, cancel)
            except StreamCancelled:
                raise
            except ProviderError as e:
                return self._fail(chat_id, e)
            return self._finish(chat_id, result)
        finally:
            _close(provider)
            self._in_flight.release()

    def send_stream(
        self,
        user_text: str,
        cancel: Optional[CancelToken] = None,
        chat_id: Optional[str] = None,
    ) -> Iterator[Dict[str, Any]]:
        """
        Generator of records for streaming front ends:
        {'type': 'delta', 'text', 'reasoning'} per fragment, then one
        {'type': 'done', 'message', 'artifact'} or {'type': 'error', 'message'}.

        The in-flight guard is taken here, so a second call raises SessionBusyError
        straight away. It is released when the generator finishes or is closed;
        closing early abandons the request without storing a reply.
        """
        self._acquire()
        chat_id = chat_id or self.store.current_chat_id

        def gen():
            provider = None
            try:
                yield None
                try:
                    provider, messages, model_id = self._prepare(user_text, chat_id)
                    if provider is None:
                        yield {"type": "done", **self._reply(chat_id, NO_SELECTION_MESSAGE)}
                        return
                    pending: List[Dict[str, Any]] = []
                    aggregator = StreamAggregator(
                        lambda ev: pending.append({"type": "delta", "text": ev.text, "reasoning": ev.is_reasoning})
                    )
                    events = provider.stream_events(messages, model_id)
                    try:
                        for event in events:
                            if cancel is not None and cancel.cancelled:
                                aggregator.discard()
                                _logger.info("Stream cancelled by caller")
                                yield {"type": "error", "message": "Cancelled"}
                                return
                            aggregator.feed(event)
                            while pending:
                                yield pending.pop(0)
                    finally:
                        _close(events)
                except ProviderError as e:
                    failed = self._fail(chat_id, e)
                    yield {"type": "error", "message": failed["message"]["content"]}
                    return
                yield {"type": "done", **self._finish(chat_id, aggregator.result())}
            finally:
                _close(provider)
                self._in_flight.release()

        records = gen()
        # Step past the priming yield so close() before iteration still releases the guard
        next(records)
        return records
