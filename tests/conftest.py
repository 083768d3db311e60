import time
from unittest.mock import Mock

import pytest

from lead_enricher.engine import LeadEnrichmentEngine
from lead_enricher.models.schemas import (
    CompanyEnrichmentData,
    MessagingStatus,
    SocialMediaInfo,
    SocialMediaMetrics,
    WebsiteTechData,
)
from lead_enricher.providers.base import (
    BusinessInfoProvider,
    ContactExtractor,
    MessagingStatusProvider,
    SocialProvider,
    TechnologyProvider,
)
from lead_enricher.stages.ai_scoring import AIScoringStage
from lead_enricher.stages.scoring import DeterministicScoringStage
from lead_enricher.storage.repository import InMemoryLeadRepository

CURRENT_YEAR = 2024


def rich_website_tech():
    return WebsiteTechData(
        platform="Shopify",
        technologies=["Shopify", "React", "Stripe", "Klaviyo", "Cloudflare", "Hotjar"],
        ecommerce="Shopify",
        analytics=["Google Analytics", "Hotjar"],
        frameworks=["React"],
    )


def rich_social_info():
    return SocialMediaInfo(
        instagram=SocialMediaMetrics(platform="instagram", followers=25000, verified=True),
        facebook=SocialMediaMetrics(platform="facebook", followers=4200),
        linkedin=SocialMediaMetrics(platform="linkedin"),
    )


def rich_company_info(name="Acme Corp."):
    return CompanyEnrichmentData(
        name=name,
        category="ecommerce",
        founded="2012",
        employees=60,
        phone="+1 512 555 0199",
        address="Austin, TX, USA",
    )


class FakeTechnologyProvider(TechnologyProvider):
    name = "fake_technology"

    def __init__(self, data=None, delay=0):
        self.data = data if data is not None else rich_website_tech()
        self.delay = delay
        self.calls = []

    def detect(self, url):
        self.calls.append(url)
        if self.delay:
            time.sleep(self.delay)
        return self.data


class FakeSocialProvider(SocialProvider):
    name = "fake_social"

    def __init__(self, data=None):
        self.data = data if data is not None else rich_social_info()
        self.calls = []

    def search(self, company_name, url=None):
        self.calls.append((company_name, url))
        return self.data


class FakeBusinessInfoProvider(BusinessInfoProvider):
    name = "fake_business_info"

    def __init__(self, data=None):
        self.data = data
        self.calls = []

    def enrich(self, name, url=None, location=None, industry=None):
        self.calls.append((name, url, location, industry))
        if self.data is not None:
            return self.data
        return rich_company_info(name)


class FakeMessagingProvider(MessagingStatusProvider):
    name = "fake_messaging"

    def __init__(self, enabled=False):
        self.enabled = enabled
        self.calls = []

    def check(self, phone=None, name=None):
        self.calls.append((phone, name))
        return MessagingStatus(
            has_business_account=self.enabled,
            phone_number=phone,
            business_name=name,
        )


class FakeContactExtractor(ContactExtractor):
    name = "fake_contact_extractor"

    def __init__(self, phone=None, email=None):
        self.phone = phone
        self.email = email
        self.phone_calls = []
        self.email_calls = []

    def extract_phone(self, url):
        self.phone_calls.append(url)
        return self.phone

    def extract_email(self, url):
        self.email_calls.append(url)
        return self.email


def failing(spec, method):
    """Mock provider whose method always raises"""
    provider = Mock(spec=spec)
    getattr(provider, method).side_effect = RuntimeError(f"{method} unavailable")
    return provider


@pytest.fixture
def rich_providers():
    return {
        "technology_provider": FakeTechnologyProvider(),
        "social_provider": FakeSocialProvider(),
        "business_info_provider": FakeBusinessInfoProvider(),
        "messaging_provider": FakeMessagingProvider(),
        "contact_extractor": FakeContactExtractor(),
    }


@pytest.fixture
def failing_providers():
    extractor = Mock(spec=ContactExtractor)
    extractor.extract_phone.side_effect = RuntimeError("scrape failed")
    extractor.extract_email.side_effect = RuntimeError("scrape failed")
    return {
        "technology_provider": failing(TechnologyProvider, "detect"),
        "social_provider": failing(SocialProvider, "search"),
        "business_info_provider": failing(BusinessInfoProvider, "enrich"),
        "messaging_provider": failing(MessagingStatusProvider, "check"),
        "contact_extractor": extractor,
    }


@pytest.fixture
def baseline():
    return DeterministicScoringStage(current_year=CURRENT_YEAR)


@pytest.fixture
def make_engine(baseline):
    """Build engines with a fixed scoring year; closed after the test"""
    engines = []

    def build(text_provider=None, **kwargs):
        kwargs.setdefault("repository", InMemoryLeadRepository())
        kwargs.setdefault("step_timeout", 2.0)
        engine = LeadEnrichmentEngine(**kwargs)
        engine.scoring_stage = AIScoringStage(
            text_provider=text_provider,
            baseline=baseline,
            timeout=engine.step_timeout,
            executor=engine._executor,
        )
        engines.append(engine)
        return engine

    yield build

    for engine in engines:
        engine.close()
