"""
Provider interfaces consumed by the enrichment pipeline.

Concrete clients (BuiltWith, SerpAPI, Clearbit, WhatsApp Cloud API, ...)
live outside this package and are injected into the engine.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Executor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from loguru import logger

from ..errors import ProviderFailure, ProviderTimeout
from ..models.schemas import (
    CompanyEnrichmentData,
    MessagingStatus,
    SocialMediaInfo,
    WebsiteTechData,
)

T = TypeVar("T")


class TechnologyProvider(ABC):
    name: str = "technology"

    @abstractmethod
    def detect(self, url: str) -> WebsiteTechData:
        """Detect the website stack. Unreachable sites return WebsiteTechData.unknown()."""


class SocialProvider(ABC):
    name: str = "social"

    @abstractmethod
    def search(self, company_name: str, url: Optional[str] = None) -> SocialMediaInfo:
        """Find social profiles. Per-platform failures are dropped, not raised."""


class BusinessInfoProvider(ABC):
    name: str = "business_info"

    @abstractmethod
    def enrich(
        self,
        name: str,
        url: Optional[str] = None,
        location: Optional[str] = None,
        industry: Optional[str] = None,
    ) -> CompanyEnrichmentData:
        """Return company data; at least CompanyEnrichmentData(name=name)."""


class MessagingStatusProvider(ABC):
    name: str = "messaging"

    @abstractmethod
    def check(self, phone: Optional[str] = None, name: Optional[str] = None) -> MessagingStatus:
        """Check business messaging status; all-false default when phone is absent."""


class ContactExtractor(ABC):
    name: str = "contact_extractor"

    @abstractmethod
    def extract_phone(self, url: str) -> Optional[str]:
        """Best-effort phone scrape. Never raises."""

    @abstractmethod
    def extract_email(self, url: str) -> Optional[str]:
        """Best-effort email scrape. Never raises."""


class TextGenerationProvider(ABC):
    name: str = "text_generation"

    @abstractmethod
    def complete(self, prompt: str) -> Dict[str, Any]:
        """Return the structured JSON response, or raise TextGenerationError."""


# =============================================================================
# Result-style provider calls
# =============================================================================

@dataclass
class ProviderResult(Generic[T]):
    """Outcome of one provider call: a value or a ProviderFailure"""
    provider: str
    value: Optional[T] = None
    error: Optional[ProviderFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def call_provider(
    provider: str,
    fn: Callable[[], T],
    timeout: Optional[float] = None,
    executor: Optional[Executor] = None,
) -> ProviderResult[T]:
    """
    Run a provider call and capture its failure instead of raising.

    When an executor is given, the call runs on it and is bounded by timeout.
    A timed-out call keeps running in its worker thread; its result is ignored.
    """
    try:
        if executor is None or timeout is None:
            return ProviderResult(provider=provider, value=fn())

        future = executor.submit(fn)
        try:
            return ProviderResult(provider=provider, value=future.result(timeout=timeout))
        except FutureTimeout:
            future.cancel()
            logger.warning(f"Provider {provider} timed out after {timeout:g}s")
            return ProviderResult(provider=provider, error=ProviderTimeout(provider, timeout))

    except ProviderFailure as e:
        return ProviderResult(provider=provider, error=e)
    except Exception as e:
        return ProviderResult(provider=provider, error=ProviderFailure(provider, str(e) or type(e).__name__))
