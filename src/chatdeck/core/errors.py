from __future__ import annotations
from typing import Optional


class ProviderError(Exception):
    """Base class for provider-level failures."""


class MissingCredentialError(ProviderError):
    """
    A provider (or the search service) needs a credential and none resolved.
    Raised before any network call is attempted.
    """


class TransportError(ProviderError):
    """
    Non-OK initial response or a network exception while streaming.
    status_code is None when the request never got a response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderResponseError(ProviderError):
    """The transport was fine but the provider reported an error inside the stream."""


class StreamCancelled(ProviderError):
    """The caller cancelled an in-flight stream; partial buffers were discarded."""


class SessionBusyError(RuntimeError):
    """A send was attempted while another one is still in flight."""
