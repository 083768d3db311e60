"""
Configuration settings for the Lead Enrichment Engine
"""

from typing import Dict, List, Tuple
import os

# =============================================================================
# LLM CONFIGURATION (OpenRouter / OpenAI / Anthropic)
# =============================================================================

LLM_CONFIG = {
    "provider": os.getenv("LLM_PROVIDER", "openrouter"),  # openrouter, openai, anthropic
    "model": os.getenv("LLM_MODEL", "openai/gpt-4-turbo"),  # OpenRouter model format
    "api_key": os.getenv("OPENROUTER_API_KEY", "") or os.getenv("OPENAI_API_KEY", ""),
    "base_url": os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1"),
    "max_tokens": int(os.getenv("LLM_MAX_TOKENS", "1500")),
    "temperature": float(os.getenv("LLM_TEMPERATURE", "0.7")),
    "timeout": float(os.getenv("LLM_TIMEOUT", "30")),
    # OpenRouter specific headers
    "site_url": os.getenv("OPENROUTER_SITE_URL", "http://localhost:8000"),
    "app_name": os.getenv("OPENROUTER_APP_NAME", "Lead Enrichment Engine"),
}

# =============================================================================
# PIPELINE CONFIGURATION
# =============================================================================

PIPELINE_CONFIG = {
    # Upper bound for every provider, scrape and AI call (seconds)
    "step_timeout": float(os.getenv("LEAD_STEP_TIMEOUT", "30")),
    "batch_concurrency": int(os.getenv("LEAD_BATCH_CONCURRENCY", "3")),
    "history_limit": 10,
}

LOGGING_CONFIG = {
    "level": os.getenv("LOG_LEVEL", "INFO"),
    "log_file": os.getenv("LOG_FILE"),  # e.g. logs/lead_enricher.log
    "rotation": "1 day",
    "retention": "7 days",
}

# Fixed step order, one ProcessingStep per entry
STEP_TECHNOLOGY = "Fetch Website Technology"
STEP_SOCIAL = "Fetch Social Media Presence"
STEP_COMPANY = "Fetch & Enrich Company Info"
STEP_MESSAGING = "Check WhatsApp Business API"
STEP_NORMALIZE = "Normalize Data"
STEP_SCORING = "AI Lead Scoring"

PIPELINE_STEPS = [
    STEP_TECHNOLOGY,
    STEP_SOCIAL,
    STEP_COMPANY,
    STEP_MESSAGING,
    STEP_NORMALIZE,
    STEP_SCORING,
]

# =============================================================================
# SCORING THRESHOLDS
# =============================================================================

FACTOR_MAX = 20
SCORE_MAX = 100

TAG_THRESHOLDS = {
    "high": 70,
    "medium": 40,
}

# Followers tier bonus for the social presence score: (exclusive lower bound, bonus)
FOLLOWER_TIERS: List[Tuple[int, int]] = [
    (100_000, 20),
    (10_000, 15),
    (1_000, 10),
]
FOLLOWER_BASE_BONUS = 5
SOCIAL_POINTS_PER_PLATFORM = 10
SOCIAL_POINTS_VERIFIED = 15

# Employee count tiers for business maturity: (exclusive lower bound, points)
EMPLOYEE_TIERS: List[Tuple[int, int]] = [
    (100, 10),
    (50, 7),
    (10, 5),
]
EMPLOYEE_BASE_POINTS = 2

# Company age tiers in years: (exclusive lower bound, points)
COMPANY_AGE_TIERS: List[Tuple[int, int]] = [
    (10, 5),
    (5, 3),
]
COMPANY_AGE_BASE_POINTS = 1

# Platforms treated as "no real platform detected"
UNKNOWN_PLATFORMS = ["Unknown", "Custom"]

# =============================================================================
# NORMALIZATION TABLES
# =============================================================================

SOCIAL_PLATFORMS = ["instagram", "facebook", "linkedin", "tiktok", "twitter"]

# Longer suffixes first so "Corporation" is not cut down to "Corporati"
LEGAL_SUFFIXES = [
    "Inc",
    "LLC",
    "Ltd",
    "Corporation",
    "Corp",
    "Company",
    "Co",
    "LLP",
    "LP",
    "PLC",
]

# Keyword -> canonical category. First matching key wins, in declaration order.
INDUSTRY_CATEGORIES: Dict[str, str] = {
    "technology": "Technology",
    "tech": "Technology",
    "software": "Software & Technology",
    "saas": "Software & Technology",
    "ecommerce": "E-commerce & Retail",
    "retail": "E-commerce & Retail",
    "healthcare": "Healthcare",
    "health": "Healthcare",
    "finance": "Financial Services",
    "fintech": "Financial Services",
    "education": "Education",
    "manufacturing": "Manufacturing",
    "consulting": "Professional Services",
    "marketing": "Marketing & Advertising",
    "advertising": "Marketing & Advertising",
    "real estate": "Real Estate",
    "hospitality": "Hospitality & Tourism",
    "food": "Food & Beverage",
    "automotive": "Automotive",
    "construction": "Construction",
    "legal": "Legal Services",
}

ANALYTICS_ALLOWLIST = ["Google Analytics", "Facebook Pixel", "Mixpanel", "Segment"]

# =============================================================================
# NARRATIVE TEMPLATES
# =============================================================================

NOTES_TEMPLATES = {
    "HIGH": (
        "Strong lead with high potential. Excellent {strength} "
        "and clear automation opportunities."
    ),
    "MEDIUM": (
        "Moderate potential. Shows promise in {strength}. "
        "May benefit from targeted outreach."
    ),
    "LOW": (
        "Lower priority lead. Limited digital presence or early-stage business. "
        "May require more nurturing."
    ),
}

APPROACH_TEMPLATES = {
    "HIGH": "Direct outreach recommended. Focus on ROI and efficiency gains. {messaging}",
    "MEDIUM": (
        "Educational approach. Share case studies and demonstrate value. "
        "Build relationship before hard sell."
    ),
    "LOW": "Long-term nurturing strategy. Provide valuable content and wait for growth signals.",
}

MARKETING_READINESS_LEVELS = [
    (30, "High - Active digital presence and tech-savvy"),
    (15, "Medium - Some digital adoption, room for improvement"),
    (0, "Low - Early stages of digital marketing adoption"),
]

NEXT_STEPS = {
    "HIGH": [
        "Schedule discovery call within 48 hours",
        "Prepare customized solution proposal",
        "Share relevant case studies",
        "Offer free consultation or demo",
    ],
    "MEDIUM": [
        "Add to nurture campaign",
        "Send educational content",
        "Monitor for buying signals",
        "Schedule follow-up in 2 weeks",
    ],
    "LOW": [
        "Add to long-term nurture list",
        "Send monthly newsletter",
        "Track for company growth indicators",
        "Re-evaluate in 3 months",
    ],
}
