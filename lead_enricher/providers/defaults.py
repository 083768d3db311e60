"""
Fallback providers used when no concrete client is configured.
Each returns the documented default for its interface.
"""

from typing import Optional

from .base import (
    BusinessInfoProvider,
    ContactExtractor,
    MessagingStatusProvider,
    SocialProvider,
    TechnologyProvider,
)
from ..models.schemas import (
    CompanyEnrichmentData,
    MessagingStatus,
    SocialMediaInfo,
    WebsiteTechData,
)


class UnknownTechnologyProvider(TechnologyProvider):
    name = "unknown_technology"

    def detect(self, url: str) -> WebsiteTechData:
        return WebsiteTechData.unknown()


class EmptySocialProvider(SocialProvider):
    name = "empty_social"

    def search(self, company_name: str, url: Optional[str] = None) -> SocialMediaInfo:
        return SocialMediaInfo()


class NameOnlyBusinessInfoProvider(BusinessInfoProvider):
    name = "name_only_business_info"

    def enrich(self, name, url=None, location=None, industry=None) -> CompanyEnrichmentData:
        return CompanyEnrichmentData(name=name, category=industry, address=location)


class DisabledMessagingProvider(MessagingStatusProvider):
    name = "disabled_messaging"

    def check(self, phone=None, name=None) -> MessagingStatus:
        status = MessagingStatus.disabled()
        status.phone_number = phone
        return status


class NoContactExtractor(ContactExtractor):
    name = "no_contact_extractor"

    def extract_phone(self, url: str) -> Optional[str]:
        return None

    def extract_email(self, url: str) -> Optional[str]:
        return None
