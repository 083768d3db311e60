"""
Deterministic Scoring
=====================
Rule-based lead scoring from normalized signals. Always available; also the
baseline and fallback for AI-assisted scoring.

Factors (0-20 each, total 0-100):
- Website quality: platform, CMS, e-commerce, analytics, frameworks
- Social activity: scaled social presence score
- Tech readiness: stack breadth, e-commerce, analytics
- Business maturity: employees, company age, funding
- Automation potential: gaps and channels worth automating
"""

import re
from datetime import datetime
from typing import List, Optional

from ..config.settings import (
    APPROACH_TEMPLATES,
    COMPANY_AGE_BASE_POINTS,
    COMPANY_AGE_TIERS,
    EMPLOYEE_BASE_POINTS,
    EMPLOYEE_TIERS,
    FACTOR_MAX,
    MARKETING_READINESS_LEVELS,
    NEXT_STEPS,
    NOTES_TEMPLATES,
)
from ..models.schemas import (
    CompanyEnrichmentData,
    EnrichedInsights,
    LeadScoringResult,
    NormalizedRecord,
    PotentialTag,
    ScoringFactors,
    ScoringOutcome,
    SocialMediaInfo,
    WebsiteTechData,
    tag_from_score,
)
from .normalization import is_unknown_platform

_YEAR = re.compile(r"\b(\d{4})\b")


def clamp_factor(value: int) -> int:
    return max(0, min(FACTOR_MAX, int(value)))


class DeterministicScoringStage:
    """
    Score a lead with fixed rules and generate template-driven narrative.
    Output depends only on the inputs and current_year.
    """

    def __init__(self, current_year: Optional[int] = None):
        self._current_year = current_year

    @property
    def current_year(self) -> int:
        return self._current_year or datetime.utcnow().year

    def process(
        self,
        company_name: str,
        website_tech: Optional[WebsiteTechData] = None,
        social_media_info: Optional[SocialMediaInfo] = None,
        company_info: Optional[CompanyEnrichmentData] = None,
        normalized: Optional[NormalizedRecord] = None,
        whatsapp_enabled: Optional[bool] = None,
    ) -> ScoringOutcome:
        """
        Compute factors, score, tag and the full narrative.

        Args:
            company_name: Name used in the narrative
            website_tech: Technology detection result
            social_media_info: Social profiles found
            company_info: Business enrichment data
            normalized: Canonical record from the normalization stage
            whatsapp_enabled: Whether business messaging is already active

        Returns:
            ScoringOutcome with source="deterministic"
        """
        factors = self.calculate_factors(
            website_tech, social_media_info, company_info, normalized, whatsapp_enabled
        )
        return self.build_outcome(factors, website_tech, social_media_info, whatsapp_enabled)

    def build_outcome(
        self,
        factors: ScoringFactors,
        website_tech: Optional[WebsiteTechData] = None,
        social_media_info: Optional[SocialMediaInfo] = None,
        whatsapp_enabled: Optional[bool] = None,
    ) -> ScoringOutcome:
        """Assemble scoring result and insights from precomputed factors"""
        score = factors.total
        tag = tag_from_score(score)
        approach = self.generate_approach(tag, whatsapp_enabled)

        scoring = LeadScoringResult(
            score=score,
            potential_tag=tag,
            scoring_factors=factors,
            notes=self.generate_notes(score, factors),
            recommended_approach=approach,
        )
        insights = EnrichedInsights(
            suggested_sales_approach=approach,
            likely_pain_points=self.generate_pain_points(website_tech, whatsapp_enabled),
            marketing_readiness=self.assess_marketing_readiness(factors),
            industry_trends=[],
            automation_opportunities=self.identify_automation_opportunities(
                website_tech, social_media_info, whatsapp_enabled
            ),
            next_steps=self.generate_next_steps(tag),
        )
        return ScoringOutcome(scoring=scoring, insights=insights, source="deterministic")

    def calculate_factors(
        self,
        website_tech: Optional[WebsiteTechData] = None,
        social_media_info: Optional[SocialMediaInfo] = None,
        company_info: Optional[CompanyEnrichmentData] = None,
        normalized: Optional[NormalizedRecord] = None,
        whatsapp_enabled: Optional[bool] = None,
    ) -> ScoringFactors:
        """Calculate the five bounded sub-scores"""
        return ScoringFactors(
            website_quality=self._score_website_quality(website_tech),
            social_activity=self._score_social_activity(normalized),
            tech_readiness=self._score_tech_readiness(website_tech, normalized),
            business_maturity=self._score_business_maturity(company_info),
            automation_potential=self._score_automation_potential(
                website_tech, social_media_info, whatsapp_enabled
            ),
        )

    # =========================================================================
    # Sub-scoring functions
    # =========================================================================

    def _score_website_quality(self, website_tech: Optional[WebsiteTechData]) -> int:
        if not website_tech:
            return 0

        score = 0
        if website_tech.platform and website_tech.platform != "Unknown":
            score += 5
        if website_tech.cms:
            score += 3
        if website_tech.ecommerce:
            score += 5
        if website_tech.analytics:
            score += 3
        if website_tech.frameworks:
            score += 4
        return clamp_factor(score)

    def _score_social_activity(self, normalized: Optional[NormalizedRecord]) -> int:
        presence = normalized.social_presence_score if normalized else 0
        # Round half up: presence * 20 / 100
        return clamp_factor((presence * FACTOR_MAX + 50) // 100)

    def _score_tech_readiness(
        self,
        website_tech: Optional[WebsiteTechData],
        normalized: Optional[NormalizedRecord],
    ) -> int:
        score = 0
        if website_tech:
            if len(set(website_tech.technologies)) > 5:
                score += 5
            if website_tech.ecommerce:
                score += 5
            if website_tech.analytics:
                score += 5
        if normalized and normalized.tech_stack:
            score += 5
        return clamp_factor(score)

    def _score_business_maturity(self, company_info: Optional[CompanyEnrichmentData]) -> int:
        if not company_info:
            return 0

        score = 0
        if company_info.employees:
            score += self._employee_points(company_info.employees)

        founded_year = self._parse_year(company_info.founded)
        if founded_year is not None:
            score += self._age_points(self.current_year - founded_year)

        if company_info.funding:
            score += 5
        return clamp_factor(score)

    def _score_automation_potential(
        self,
        website_tech: Optional[WebsiteTechData],
        social_media_info: Optional[SocialMediaInfo],
        whatsapp_enabled: Optional[bool],
    ) -> int:
        score = 0
        if not whatsapp_enabled:
            score += 5  # Opportunity to adopt business messaging
        if website_tech and website_tech.ecommerce:
            score += 5
        if social_media_info and len(social_media_info.platforms()) >= 3:
            score += 5
        if website_tech and website_tech.analytics:
            score += 3
        if website_tech and is_unknown_platform(website_tech.platform):
            score += 2  # Greenfield
        return clamp_factor(score)

    # =========================================================================
    # Narrative
    # =========================================================================

    def generate_notes(self, score: int, factors: ScoringFactors) -> str:
        tag = tag_from_score(score)
        if tag == PotentialTag.HIGH:
            strength = "business maturity" if factors.business_maturity > 15 else "digital presence"
        elif tag == PotentialTag.MEDIUM:
            strength = "technology adoption" if factors.tech_readiness > 10 else "business development"
        else:
            strength = ""
        return NOTES_TEMPLATES[tag.value].format(strength=strength)

    def generate_approach(self, tag: PotentialTag, whatsapp_enabled: Optional[bool]) -> str:
        messaging = (
            "Offer advanced automation features."
            if whatsapp_enabled
            else "Emphasize WhatsApp Business API benefits."
        )
        return APPROACH_TEMPLATES[tag.value].format(messaging=messaging)

    def generate_pain_points(
        self, website_tech: Optional[WebsiteTechData], whatsapp_enabled: Optional[bool]
    ) -> List[str]:
        pain_points = []

        if not whatsapp_enabled:
            pain_points.append("Missing modern customer communication channels")
        if not website_tech or not website_tech.analytics:
            pain_points.append("Limited data-driven decision making")
        if not website_tech or not website_tech.ecommerce:
            pain_points.append("Potential for online sales channel expansion")

        return pain_points or ["General business growth and efficiency"]

    def assess_marketing_readiness(self, factors: ScoringFactors) -> str:
        total = factors.social_activity + factors.tech_readiness
        for minimum, label in MARKETING_READINESS_LEVELS:
            if total >= minimum:
                return label
        return MARKETING_READINESS_LEVELS[-1][1]

    def identify_automation_opportunities(
        self,
        website_tech: Optional[WebsiteTechData],
        social_media_info: Optional[SocialMediaInfo],
        whatsapp_enabled: Optional[bool],
    ) -> List[str]:
        opportunities = []

        if not whatsapp_enabled:
            opportunities.append("WhatsApp Business API for customer communication")
        if website_tech and website_tech.ecommerce:
            opportunities.append("E-commerce automation and cart recovery")
        if social_media_info and social_media_info.platforms():
            opportunities.append("Social media management and engagement automation")
        if not website_tech or not website_tech.analytics:
            opportunities.append("Marketing analytics and tracking implementation")

        return opportunities

    def generate_next_steps(self, tag: PotentialTag) -> List[str]:
        return list(NEXT_STEPS[tag.value])

    # =========================================================================
    # Helper functions
    # =========================================================================

    def _employee_points(self, employees: int) -> int:
        for lower_bound, points in EMPLOYEE_TIERS:
            if employees > lower_bound:
                return points
        return EMPLOYEE_BASE_POINTS

    def _age_points(self, age: int) -> int:
        for lower_bound, points in COMPANY_AGE_TIERS:
            if age > lower_bound:
                return points
        return COMPANY_AGE_BASE_POINTS

    def _parse_year(self, founded: Optional[str]) -> Optional[int]:
        """Extract a four-digit founding year"""
        if not founded:
            return None
        match = _YEAR.search(str(founded))
        return int(match.group(1)) if match else None
