"""Shared HTTP streaming machinery for the provider adapters.

Each adapter only describes its request (URL, headers, body) and how one
decoded frame maps onto :class:`StreamEvent`; opening the response, turning
failures into neutral errors and walking the frames happens here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

import httpx

from chatdeck.core.errors import MissingCredentialError, ProviderResponseError, TransportError
from chatdeck.core.events import StreamEvent
from chatdeck.core.ports import EventCallback, Message
from .framing import iter_ndjson, iter_sse
from .specs import ProviderSpec

_logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0


def _error_text(body: Any) -> Optional[str]:
    """Pull a human readable message out of a provider error body."""
    if isinstance(body, list) and body:
        return _error_text(body[0])
    if not isinstance(body, dict):
        return None
    err = body.get("error")
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    if isinstance(err, str) and err:
        return err
    return None


class HTTPStreamProvider:
    """
    Base adapter. Subclasses set `spec`, `framing` and `fallback_error`, and implement
    _request() and _parse_frame().
    """

    spec: ProviderSpec
    framing: str = "sse"  # "sse" | "ndjson"
    fallback_error: str = "API error"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or self.spec.base_url).rstrip("/")
        self.timeout = float(timeout) if timeout is not None else DEFAULT_TIMEOUT
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return self.spec.id.value

    @classmethod
    def create(cls, *, provider_cfg: Dict[str, Any], secrets, client: Optional[httpx.Client] = None):
        api_key = secrets.secret(cls.spec.id.value, "api_key") if cls.spec.needs_credential else None
        cfg = provider_cfg or {}
        return cls(
            api_key=api_key,
            base_url=cfg.get("base_url"),
            timeout=cfg.get("timeout"),
            client=client,
        )

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=httpx.Timeout(self.timeout, connect=30))
        return self._client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    # Subclass hooks

    def _request(self, conversation: List[Message], model_id: str) -> Dict[str, Any]:
        """Keyword arguments for httpx.Client.stream('POST', ...)."""
        raise NotImplementedError

    def _parse_frame(self, data: Dict[str, Any]) -> Iterator[StreamEvent]:
        raise NotImplementedError

    def _is_final(self, data: Dict[str, Any]) -> bool:
        return False

    def _frames(self, chunks: Iterable[bytes]) -> Iterator[Dict[str, Any]]:
        return iter_sse(chunks) if self.framing == "sse" else iter_ndjson(chunks)

    # Public API

    def stream_events(self, conversation: List[Message], model_id: str) -> Iterator[StreamEvent]:
        if self.spec.needs_credential and not self.api_key:
            raise MissingCredentialError(f"{self.spec.display_name} API key missing")
        request = self._request(conversation, model_id or self.spec.default_model)
        return self._stream(request)

    def stream_chat(self, conversation: List[Message], on_event: EventCallback, model_id: str) -> None:
        """
        Forward every non-empty fragment to on_event; returns when the stream ends.
        Usage-only events carry no text and are not forwarded.
        """
        for event in self.stream_events(conversation, model_id):
            if event.text:
                on_event(event)

    # Internals

    def _stream(self, request: Dict[str, Any]) -> Iterator[StreamEvent]:
        try:
            with self.client.stream("POST", **request) as resp:
                if resp.status_code >= 400:
                    resp.read()
                    raise TransportError(self._error_message(resp), status_code=resp.status_code)
                for data in self._frames(resp.iter_bytes()):
                    message = _error_text(data)
                    if message:
                        raise ProviderResponseError(f"{self.spec.display_name}: {message}")
                    yield from self._parse_frame(data)
                    if self._is_final(data):
                        break
        except httpx.HTTPError as e:
            _logger.warning("%s transport failure: %s", self.spec.display_name, e)
            raise TransportError(f"{self.spec.display_name} request failed: {e}") from e

    def _error_message(self, resp: httpx.Response) -> str:
        try:
            message = _error_text(resp.json())
        except ValueError:
            message = None
        _logger.warning("%s returned HTTP %d", self.spec.display_name, resp.status_code)
        return message or f"{self.spec.display_name} {self.fallback_error}"
