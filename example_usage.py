"""
Lead Enrichment Engine - Usage Examples
=======================================
This file demonstrates how to plug providers into the engine and
work with processed leads.
"""

from lead_enricher.models.schemas import (
    CompanyEnrichmentData,
    MessagingStatus,
    SocialMediaInfo,
    SocialMediaMetrics,
    WebsiteTechData,
)
from lead_enricher.providers.base import (
    BusinessInfoProvider,
    MessagingStatusProvider,
    SocialProvider,
    TechnologyProvider,
)


# =============================================================================
# Sample providers (static data standing in for real API clients)
# =============================================================================

class StaticTechnologyProvider(TechnologyProvider):
    name = "static_technology"

    def detect(self, url):
        return WebsiteTechData(
            platform="Shopify",
            technologies=["Shopify", "React", "Stripe", "Klaviyo", "Cloudflare", "Hotjar"],
            ecommerce="Shopify",
            analytics=["Google Analytics", "Facebook Pixel"],
            frameworks=["React"],
        )


class StaticSocialProvider(SocialProvider):
    name = "static_social"

    def search(self, company_name, url=None):
        return SocialMediaInfo(
            instagram=SocialMediaMetrics(platform="instagram", followers=25000, verified=True),
            facebook=SocialMediaMetrics(platform="facebook", followers=4200),
        )


class StaticBusinessInfoProvider(BusinessInfoProvider):
    name = "static_business_info"

    def enrich(self, name, url=None, location=None, industry=None):
        return CompanyEnrichmentData(
            name=name,
            category="Retail & E-commerce",
            founded="2012",
            employees=60,
            phone="+1 512 555 0199",
            address=location,
        )


class StaticMessagingProvider(MessagingStatusProvider):
    name = "static_messaging"

    def check(self, phone=None, name=None):
        return MessagingStatus(has_business_account=bool(phone), phone_number=phone, business_name=name)


# =============================================================================
# EXAMPLE 1: Single lead
# =============================================================================

def example_single_lead():
    """Enrich and score one lead"""
    from lead_enricher.engine import LeadEnrichmentEngine

    engine = LeadEnrichmentEngine(
        technology_provider=StaticTechnologyProvider(),
        social_provider=StaticSocialProvider(),
        business_info_provider=StaticBusinessInfoProvider(),
        messaging_provider=StaticMessagingProvider(),
    )

    print("=" * 60)
    print("PROCESSING LEAD: Acme Corp.")
    print("=" * 60)

    result = engine.process_lead({
        "company_name": "Acme Corp.",
        "website_url": "acme.com",
        "location": "Austin, TX, USA",
    })

    normalized = result.normalized_data
    scoring = result.lead_score_and_notes
    print(f"\nCompany: {normalized.company_name} ({normalized.website_url})")
    print(f"Phone: {normalized.formatted_phone}")
    print(f"Score: {scoring.score}/100 ({scoring.potential_tag.value})")

    print("\n--- Scoring Factors ---")
    for name, value in scoring.scoring_factors.model_dump().items():
        print(f"  {name:<22} {value}")

    print("\n--- Steps ---")
    for step in result.processing_steps:
        print(f"  [{step.status.value}] {step.step_name}")

    print(f"\nNotes: {scoring.notes}")
    print(f"Approach: {scoring.recommended_approach}")
    print(f"\nProcessing Time: {result.total_processing_time_ms:.2f}ms")

    engine.close()
    return result


# =============================================================================
# EXAMPLE 2: Batch processing and queries
# =============================================================================

def example_batch_processing():
    """Process several leads, then query and re-score them"""
    from lead_enricher.engine import LeadEnrichmentEngine
    from lead_enricher.models.schemas import PotentialTag

    with LeadEnrichmentEngine(
        technology_provider=StaticTechnologyProvider(),
        social_provider=StaticSocialProvider(),
        batch_concurrency=2,
    ) as engine:
        leads = [
            {"company_name": "Bright Dental LLC", "website_url": "brightdental.example", "industry": "dental clinic"},
            {"company_name": "Fit Hub", "industry": "fitness"},
            {"company_name": "", "website_url": "no-name.example"},  # rejected
            {"company_name": "Northwind Traders Inc", "website_url": "northwind.example"},
        ]

        print("=" * 60)
        print(f"BATCH PROCESSING: {len(leads)} Leads")
        print("=" * 60)

        results = engine.process_batch_leads(leads)
        print(f"\nProcessed: {len(results)}/{len(leads)}")

        print("\n--- Ranked Leads ---")
        for i, lead in enumerate(engine.list_leads(), 1):
            print(f"  {i}. {lead.company_name}: {lead.lead_score}/100 ({lead.potential_tag.value})")

        medium = engine.list_leads(potential_tag=PotentialTag.MEDIUM)
        print(f"\nMEDIUM leads: {len(medium)}")

        if results:
            lead_id = results[0].lead_id
            engine.update_lead_score(lead_id)
            print("\n--- History ---")
            for entry in engine.get_lead_history(lead_id):
                print(f"  {entry.action.value}: {entry.previous_score} -> {entry.new_score}")

        print(f"\nStats: {engine.get_stats()}")
        return results


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    from dotenv import load_dotenv
    from lead_enricher.config.log_setup import configure_logging

    load_dotenv()
    configure_logging(level="WARNING")

    print("\n" + "=" * 60)
    print("LEAD ENRICHMENT ENGINE - USAGE EXAMPLES")
    print("=" * 60 + "\n")

    print("\n[Example 1: Single Lead]")
    example_single_lead()

    print("\n" + "-" * 60)
    print("\n[Example 2: Batch Processing]")
    example_batch_processing()

    print("\n" + "=" * 60)
    print("EXAMPLES COMPLETE")
    print("=" * 60)
