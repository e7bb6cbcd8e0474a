from __future__ import annotations

from abc import ABC, abstractmethod

from querydesk.app.query.types import ProviderKind, ProviderResponse, QueryRequest


class ProviderError(Exception):
    """Base of the typed failures a provider adapter may raise."""

    def __init__(self, provider_id: str, code: str, message: str) -> None:
        super().__init__(f"{provider_id}:{code}:{message}")
        self.provider_id = provider_id
        self.code = code
        self.message = message


class ProviderFailure(ProviderError):
    """Reported to the user once; does not affect sibling providers."""


class ProviderRateLimited(ProviderError):
    """Recoverable throttling; retried after a fixed backoff, never reported."""


class ProviderAdapter(ABC):
    @property
    @abstractmethod
    def provider_id(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        raise NotImplementedError

    def supports(self, source_language: str, target_language: str) -> bool:
        return True

    @abstractmethod
    async def translate(self, request: QueryRequest) -> ProviderResponse:
        """Return a normalized response or raise a ProviderError.

        Cancelling the awaiting task is the abort signal; adapters must let
        ``asyncio.CancelledError`` propagate so the transport is torn down.
        """
        raise NotImplementedError
