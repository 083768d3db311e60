"""
Pydantic schemas for the Lead Enrichment Engine
"""

from enum import Enum
from typing import List, Dict, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime
import uuid

from ..config.settings import SOCIAL_PLATFORMS, TAG_THRESHOLDS


def utcnow() -> datetime:
    return datetime.utcnow()


# =============================================================================
# ENUMS
# =============================================================================

class PotentialTag(str, Enum):
    """Categorical bucket derived from the lead score"""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class StepStatus(str, Enum):
    """Status of a single pipeline step"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class LeadStatus(str, Enum):
    """Lifecycle status of a persisted lead"""
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class HistoryAction(str, Enum):
    """Kinds of entries in the lead history log"""
    LEAD_PROCESSED = "LEAD_PROCESSED"
    SCORE_UPDATED = "SCORE_UPDATED"
    LEAD_FAILED = "LEAD_FAILED"


def tag_from_score(score: int) -> PotentialTag:
    """Map a 0-100 score to its potential tag"""
    if score >= TAG_THRESHOLDS["high"]:
        return PotentialTag.HIGH
    if score >= TAG_THRESHOLDS["medium"]:
        return PotentialTag.MEDIUM
    return PotentialTag.LOW


# =============================================================================
# INPUT SCHEMAS
# =============================================================================

class LeadInput(BaseModel):
    """Caller-supplied lead. Only company_name is required."""
    model_config = ConfigDict(frozen=True)

    company_name: str
    website_url: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None


# =============================================================================
# RAW PROVIDER FRAGMENTS
# =============================================================================

class WebsiteTechData(BaseModel):
    """Technology detected on the company website"""
    platform: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    cms: Optional[str] = None
    ecommerce: Optional[str] = None
    analytics: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    hosting: Optional[str] = None

    @classmethod
    def unknown(cls) -> "WebsiteTechData":
        """Default record for unreachable or undetectable sites"""
        return cls(platform="Unknown")


class SocialMediaMetrics(BaseModel):
    """Metrics for one social platform profile"""
    platform: str
    url: Optional[str] = None
    followers: Optional[int] = None
    posts: Optional[int] = None
    engagement_rate: Optional[float] = None
    last_post_date: Optional[str] = None
    verified: Optional[bool] = None


class SocialMediaInfo(BaseModel):
    """Profiles found per platform; absent platforms stay None"""
    instagram: Optional[SocialMediaMetrics] = None
    facebook: Optional[SocialMediaMetrics] = None
    linkedin: Optional[SocialMediaMetrics] = None
    tiktok: Optional[SocialMediaMetrics] = None
    twitter: Optional[SocialMediaMetrics] = None

    def platforms(self) -> Dict[str, SocialMediaMetrics]:
        """Present platforms in declaration order"""
        found = {}
        for name in SOCIAL_PLATFORMS:
            metrics = getattr(self, name)
            if metrics is not None:
                found[name] = metrics
        return found


class MessagingStatus(BaseModel):
    """Business messaging (WhatsApp Business API) status"""
    has_business_account: bool = False
    is_verified: bool = False
    phone_number: Optional[str] = None
    business_name: Optional[str] = None
    api_enabled: bool = False

    @classmethod
    def disabled(cls) -> "MessagingStatus":
        return cls()


class KeyContact(BaseModel):
    name: str
    role: str
    linkedin: Optional[str] = None


class CompanyEnrichmentData(BaseModel):
    """Business information from the enrichment provider"""
    name: str
    domain: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    size: Optional[str] = None
    founded: Optional[str] = None
    employees: Optional[int] = None
    funding: Optional[str] = None
    revenue: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    linkedin_url: Optional[str] = None
    key_contacts: List[KeyContact] = Field(default_factory=list)

    @field_validator("founded", mode="before")
    @classmethod
    def _founded_as_text(cls, value):
        if value is None:
            return None
        return str(value)


# =============================================================================
# NORMALIZED RECORD
# =============================================================================

class Location(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class NormalizedRecord(BaseModel):
    """Canonical lead record built by the normalization stage"""
    company_name: str
    website_url: Optional[str] = None
    formatted_phone: Optional[str] = None
    formatted_email: Optional[str] = None
    location: Location = Field(default_factory=Location)
    industry_category: Optional[str] = None
    tech_stack: List[str] = Field(default_factory=list)
    social_presence_score: int = Field(default=0, ge=0, le=100)
    whatsapp_enabled: bool = False


# =============================================================================
# SCORING SCHEMAS
# =============================================================================

class ScoringFactors(BaseModel):
    """Five sub-scores, each in [0, 20]"""
    website_quality: int = Field(default=0, ge=0, le=20)
    social_activity: int = Field(default=0, ge=0, le=20)
    tech_readiness: int = Field(default=0, ge=0, le=20)
    business_maturity: int = Field(default=0, ge=0, le=20)
    automation_potential: int = Field(default=0, ge=0, le=20)

    @property
    def total(self) -> int:
        return (
            self.website_quality
            + self.social_activity
            + self.tech_readiness
            + self.business_maturity
            + self.automation_potential
        )


class LeadScoringResult(BaseModel):
    """Score, tag and scoring notes for a lead"""
    score: int = Field(ge=0, le=100)
    potential_tag: PotentialTag
    scoring_factors: ScoringFactors
    notes: str = ""
    recommended_approach: str = ""

    @model_validator(mode="after")
    def _tag_matches_score(self):
        expected = tag_from_score(self.score)
        if self.potential_tag != expected:
            raise ValueError(
                f"potential_tag {self.potential_tag.value} does not match score {self.score}"
            )
        return self


class EnrichedInsights(BaseModel):
    """Advisory narrative. Never feeds back into the score."""
    suggested_sales_approach: str = ""
    likely_pain_points: List[str] = Field(default_factory=list)
    marketing_readiness: str = ""
    competitor_activity: Optional[str] = None
    industry_trends: List[str] = Field(default_factory=list)
    automation_opportunities: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


class ScoringOutcome(BaseModel):
    """Result of the scoring step"""
    scoring: LeadScoringResult
    insights: EnrichedInsights
    source: str = "deterministic"  # "ai" or "deterministic"


# =============================================================================
# PIPELINE & PERSISTENCE SCHEMAS
# =============================================================================

class ProcessingStep(BaseModel):
    """Audit record for one pipeline step"""
    step_name: str
    status: StepStatus = StepStatus.PENDING
    data: Optional[Any] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class Lead(BaseModel):
    """Persisted aggregate root for one lead"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    company_name: str
    website_url: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None

    status: LeadStatus = LeadStatus.PROCESSING
    processing_stage: Optional[str] = None

    # Raw fragments
    website_tech: Optional[WebsiteTechData] = None
    social_media_info: Optional[SocialMediaInfo] = None
    messaging_status: Optional[MessagingStatus] = None
    company_info: Optional[CompanyEnrichmentData] = None

    # Derived
    normalized_data: Optional[NormalizedRecord] = None
    scoring: Optional[LeadScoringResult] = None
    insights: Optional[EnrichedInsights] = None
    processing_steps: List[ProcessingStep] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_processed_at: Optional[datetime] = None

    @property
    def lead_score(self) -> Optional[int]:
        return self.scoring.score if self.scoring else None

    @property
    def potential_tag(self) -> Optional[PotentialTag]:
        return self.scoring.potential_tag if self.scoring else None

    def to_input(self) -> LeadInput:
        return LeadInput(
            company_name=self.company_name,
            website_url=self.website_url,
            location=self.location,
            industry=self.industry,
        )


class LeadHistoryEntry(BaseModel):
    """Append-only history log entry, written on every scoring event"""
    lead_id: str
    action: HistoryAction
    previous_score: Optional[int] = None
    new_score: Optional[int] = None
    changes: Dict[str, Any] = Field(default_factory=dict)
    performed_at: datetime = Field(default_factory=utcnow)


class LeadProcessingResult(BaseModel):
    """Complete result of processing one lead"""
    lead_id: str
    company_name: str
    website_url: Optional[str] = None
    website_tech: Optional[WebsiteTechData] = None
    social_media_info: Optional[SocialMediaInfo] = None
    messaging_status: Optional[MessagingStatus] = None
    company_info_enriched: Optional[CompanyEnrichmentData] = None
    normalized_data: Optional[NormalizedRecord] = None
    lead_score_and_notes: Optional[LeadScoringResult] = None
    enriched_insights: Optional[EnrichedInsights] = None
    processing_steps: List[ProcessingStep] = Field(default_factory=list)
    status: LeadStatus
    created_at: datetime
    updated_at: datetime = Field(default_factory=utcnow)
    total_processing_time_ms: float = 0
