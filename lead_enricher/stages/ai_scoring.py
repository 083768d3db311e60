"""
AI-Assisted Scoring
===================
Wraps a text generation provider around the deterministic scorer.

The deterministic factors are always computed first: they are embedded in the
prompt as context and used field-by-field when the model omits or garbles a
value. Any provider failure (network, auth, timeout, unparseable output)
yields the fully deterministic result set instead of an error.
"""

import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import ValidationError

from ..config.settings import LLM_CONFIG, SCORE_MAX
from ..errors import TextGenerationError
from ..models.schemas import (
    CompanyEnrichmentData,
    EnrichedInsights,
    LeadScoringResult,
    NormalizedRecord,
    ScoringFactors,
    ScoringOutcome,
    SocialMediaInfo,
    WebsiteTechData,
    tag_from_score,
)
from ..providers.base import TextGenerationProvider, call_provider
from .scoring import DeterministicScoringStage

_INSIGHT_TEXT_FIELDS = ["suggested_sales_approach", "marketing_readiness"]
_INSIGHT_LIST_FIELDS = [
    "likely_pain_points",
    "industry_trends",
    "automation_opportunities",
    "next_steps",
]


class AIScoringStage:
    """
    Score and enrich a lead with an LLM, falling back to deterministic scoring.
    """

    def __init__(
        self,
        text_provider: Optional[TextGenerationProvider] = None,
        baseline: Optional[DeterministicScoringStage] = None,
        timeout: Optional[float] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Args:
            text_provider: Generative text provider (None = deterministic only)
            baseline: Deterministic scorer used for context and fallback
            timeout: Upper bound for the provider call in seconds
            executor: Executor the provider call runs on
        """
        self.text_provider = text_provider
        self.baseline = baseline or DeterministicScoringStage()
        self.timeout = timeout if timeout is not None else LLM_CONFIG.get("timeout", 30)
        self.executor = executor
        if self.text_provider is not None and self.executor is None:
            self.executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="ai-scoring")

    def score_and_enrich_lead(
        self,
        company_name: str,
        website_tech: Optional[WebsiteTechData] = None,
        social_media_info: Optional[SocialMediaInfo] = None,
        company_info: Optional[CompanyEnrichmentData] = None,
        normalized: Optional[NormalizedRecord] = None,
        whatsapp_enabled: Optional[bool] = None,
    ) -> ScoringOutcome:
        """
        Generate AI-assisted scoring and insights.

        Returns:
            ScoringOutcome with source="ai", or the deterministic outcome
            (source="deterministic") when the provider is missing or fails
        """
        start_time = time.time()

        factors = self.baseline.calculate_factors(
            website_tech, social_media_info, company_info, normalized, whatsapp_enabled
        )

        def fallback() -> ScoringOutcome:
            return self.baseline.build_outcome(
                factors, website_tech, social_media_info, whatsapp_enabled
            )

        if self.text_provider is None:
            return fallback()

        prompt = self._generate_prompt(
            company_name,
            website_tech,
            social_media_info,
            company_info,
            normalized,
            factors,
            whatsapp_enabled,
        )

        result = call_provider(
            "text_generation",
            lambda: self.text_provider.complete(prompt),
            timeout=self.timeout,
            executor=self.executor,
        )
        if not result.ok:
            logger.warning(f"AI scoring unavailable for {company_name}, using deterministic scoring: {result.error}")
            return fallback()

        try:
            outcome = self._merge_response(result.value, factors)
        except (TextGenerationError, ValidationError, TypeError, ValueError) as e:
            logger.warning(f"AI response unusable for {company_name}, using deterministic scoring: {e}")
            return fallback()

        processing_time = (time.time() - start_time) * 1000
        logger.info(
            f"AI scoring for {company_name}: {outcome.scoring.score}/100 "
            f"({outcome.scoring.potential_tag.value}) in {processing_time:.0f}ms"
        )
        return outcome

    # =========================================================================
    # Merge
    # =========================================================================

    def _merge_response(self, response: Any, baseline: ScoringFactors) -> ScoringOutcome:
        """Merge the model response with the baseline, field by field"""
        if not isinstance(response, dict):
            raise TextGenerationError(f"Expected a JSON object, got {type(response).__name__}")

        factors = self._parse_factors(response.get("scoring_factors")) or baseline

        # Score must equal the factor total; a disagreeing model score loses
        score = factors.total
        response_score = self._parse_score(response.get("score"))
        if response_score is not None and response_score != score:
            logger.debug(f"Model score {response_score} disagrees with factor total {score}")

        tag = tag_from_score(score)
        response_tag = response.get("potential_tag")
        if response_tag and str(response_tag).upper() != tag.value:
            logger.debug(f"Model tag {response_tag} replaced with {tag.value} for score {score}")

        scoring = LeadScoringResult(
            score=score,
            potential_tag=tag,
            scoring_factors=factors,
            notes=self._text(response.get("notes")),
            recommended_approach=self._text(response.get("recommended_approach")),
        )

        insight_values: Dict[str, Any] = {}
        for field in _INSIGHT_TEXT_FIELDS:
            insight_values[field] = self._text(response.get(field))
        for field in _INSIGHT_LIST_FIELDS:
            insight_values[field] = self._text_list(response.get(field))
        competitor_activity = response.get("competitor_activity")
        insight_values["competitor_activity"] = (
            competitor_activity if isinstance(competitor_activity, str) else None
        )

        return ScoringOutcome(
            scoring=scoring,
            insights=EnrichedInsights(**insight_values),
            source="ai",
        )

    def _parse_score(self, value: Any) -> Optional[int]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return max(0, min(SCORE_MAX, int(round(value))))

    def _parse_factors(self, value: Any) -> Optional[ScoringFactors]:
        """Valid factor payloads only; anything else means "absent" """
        if not isinstance(value, dict):
            return None
        try:
            return ScoringFactors(**{
                name: value[name] for name in ScoringFactors.model_fields
            })
        except (KeyError, ValidationError, TypeError):
            return None

    def _text(self, value: Any) -> str:
        return value if isinstance(value, str) else ""

    def _text_list(self, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]

    # =========================================================================
    # Prompt
    # =========================================================================

    def _generate_prompt(
        self,
        company_name: str,
        website_tech: Optional[WebsiteTechData],
        social_media_info: Optional[SocialMediaInfo],
        company_info: Optional[CompanyEnrichmentData],
        normalized: Optional[NormalizedRecord],
        factors: ScoringFactors,
        whatsapp_enabled: Optional[bool],
    ) -> str:
        """Generate the LLM prompt with company data and baseline factors"""
        industry = (company_info.category if company_info else None) or (
            normalized.industry_category if normalized else None
        )
        size = company_info.size if company_info and company_info.size else "Unknown"
        employees = company_info.employees if company_info and company_info.employees else "Unknown"
        location = (company_info.address if company_info else None) or (
            normalized.location.city if normalized else None
        )
        tech_stack = ", ".join(normalized.tech_stack) if normalized and normalized.tech_stack else "Unknown"
        analytics = ", ".join(website_tech.analytics) if website_tech and website_tech.analytics else "None"
        platforms = ", ".join(social_media_info.platforms()) if social_media_info else ""
        social_score = normalized.social_presence_score if normalized else 0

        return f"""
Analyze this company for lead scoring and provide actionable insights:

Company: {company_name}
Industry: {industry or 'Unknown'}
Size: {size} ({employees} employees)
Location: {location or 'Unknown'}

Website Technology:
- Platform: {(website_tech.platform if website_tech else None) or 'Unknown'}
- Tech Stack: {tech_stack}
- E-commerce: {(website_tech.ecommerce if website_tech else None) or 'No'}
- Analytics: {analytics}

Social Media Presence:
- Platforms: {platforms or 'None'}
- Social Score: {social_score}/100

WhatsApp Business: {'Yes' if whatsapp_enabled else 'No'}

Base Scoring Factors (0-20 each):
- Website Quality: {factors.website_quality}
- Social Activity: {factors.social_activity}
- Tech Readiness: {factors.tech_readiness}
- Business Maturity: {factors.business_maturity}
- Automation Potential: {factors.automation_potential}

Provide a comprehensive analysis in JSON format with the following structure:
{{
  "score": <total score 0-100, equal to the sum of scoring_factors>,
  "potential_tag": "<HIGH|MEDIUM|LOW>",
  "scoring_factors": {{
    "website_quality": <0-20>,
    "social_activity": <0-20>,
    "tech_readiness": <0-20>,
    "business_maturity": <0-20>,
    "automation_potential": <0-20>
  }},
  "notes": "<2-3 sentence summary of why this score was given>",
  "recommended_approach": "<specific sales approach recommendation>",
  "suggested_sales_approach": "<detailed sales strategy>",
  "likely_pain_points": ["<pain point 1>", "<pain point 2>"],
  "marketing_readiness": "<assessment of their marketing maturity>",
  "competitor_activity": "<insights about competition if applicable>",
  "industry_trends": ["<trend 1>", "<trend 2>"],
  "automation_opportunities": ["<opportunity 1>", "<opportunity 2>"],
  "next_steps": ["<action 1>", "<action 2>"]
}}

Tag rules: score >= 70 is HIGH, score >= 40 is MEDIUM, otherwise LOW.
Return ONLY the JSON object, no other text."""
