"""
Data Normalization
==================
Turns raw provider fragments into one canonical NormalizedRecord.

Every transform is total (never raises on malformed input) and idempotent.
Absent sources produce defaults (0, False, []) rather than None.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

import phonenumbers

from ..config.settings import (
    ANALYTICS_ALLOWLIST,
    FOLLOWER_BASE_BONUS,
    FOLLOWER_TIERS,
    INDUSTRY_CATEGORIES,
    LEGAL_SUFFIXES,
    SOCIAL_POINTS_PER_PLATFORM,
    SOCIAL_POINTS_VERIFIED,
    UNKNOWN_PLATFORMS,
)
from ..models.schemas import (
    CompanyEnrichmentData,
    LeadInput,
    Location,
    NormalizedRecord,
    SocialMediaInfo,
    WebsiteTechData,
)

_SUFFIX_PATTERN = re.compile(
    r"\s*,?\s*\b(?:" + "|".join(re.escape(s) for s in LEGAL_SUFFIXES) + r")\.?\s*$",
    re.IGNORECASE,
)

_URL_SCHEME = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*)://")

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")

# RFC 5322 simplified
EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9]"
    r"(?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(?:\.[a-zA-Z0-9]"
    r"(?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*\.[a-zA-Z]{2,}$"
)

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]+>")


# =============================================================================
# Field transforms
# =============================================================================

def normalize_company_name(name: Optional[str]) -> str:
    """Strip trailing legal-entity suffixes and title-case each word"""
    normalized = (name or "").strip()

    while True:
        stripped = _SUFFIX_PATTERN.sub("", normalized, count=1)
        if stripped == normalized or not stripped.strip():
            break
        normalized = stripped

    return " ".join(word.capitalize() for word in normalized.split())


def _canonical_url(url: str) -> Optional[str]:
    candidate = url.strip()
    scheme = _URL_SCHEME.match(candidate)
    if scheme is None:
        candidate = "https://" + candidate
    elif scheme.group(1).lower() not in ("http", "https"):
        return None

    try:
        parts = urlsplit(candidate)
        # Accessing port validates it
        parts.port
    except ValueError:
        return None

    if not parts.hostname or any(c.isspace() for c in parts.netloc):
        return None

    normalized = f"{parts.scheme.lower()}://{parts.netloc.lower()}{parts.path}"
    return normalized.rstrip("/")


def normalize_url(url: Optional[str]) -> Optional[str]:
    """Ensure a scheme and drop the trailing slash. Non-HTTP or unparseable input is returned as-is."""
    if not url:
        return None
    return _canonical_url(url) or url


def _format_international(phone: str) -> Optional[str]:
    try:
        parsed = phonenumbers.parse(phone, None)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL)


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """International format when valid, otherwise the original string"""
    if not phone:
        return None

    formatted = _format_international(phone)
    if formatted:
        return formatted

    cleaned = _PHONE_SEPARATORS.sub("", phone)
    if not cleaned.startswith("+"):
        cleaned = "+" + cleaned

    return _format_international(cleaned) or phone


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_REGEX.match(email) is not None


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lowercase + trim; None when the address is not syntactically valid"""
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized if is_valid_email(normalized) else None


def parse_location(location: Optional[str]) -> Location:
    """Split "city[, state], country" into parts"""
    if not location or not location.strip():
        return Location()

    parts = [p.strip() for p in location.split(",") if p.strip()]
    if not parts:
        return Location()

    if len(parts) == 1:
        return Location(city=parts[0])
    if len(parts) == 2:
        return Location(city=parts[0], country=parts[1])
    return Location(city=parts[0], state=parts[1], country=parts[-1])


def normalize_industry(category: Optional[str]) -> Optional[str]:
    """Map to the canonical taxonomy; unmatched input passes through"""
    if not category:
        return None

    lowered = category.lower()
    for keyword, canonical in INDUSTRY_CATEGORIES.items():
        if keyword in lowered:
            return canonical
    return category


def normalize_tech_stack(website_tech: Optional[WebsiteTechData]) -> List[str]:
    """Deduplicated union of platform, CMS, e-commerce, frameworks and major analytics"""
    if not website_tech:
        return []

    stack: Dict[str, None] = {}

    if website_tech.platform and website_tech.platform != "Unknown":
        stack[website_tech.platform] = None
    if website_tech.cms:
        stack[website_tech.cms] = None
    if website_tech.ecommerce:
        stack[website_tech.ecommerce] = None
    for framework in website_tech.frameworks:
        stack[framework] = None
    for tool in website_tech.analytics:
        if tool in ANALYTICS_ALLOWLIST:
            stack[tool] = None

    return list(stack)


def _follower_bonus(followers: int) -> int:
    for lower_bound, bonus in FOLLOWER_TIERS:
        if followers > lower_bound:
            return bonus
    return FOLLOWER_BASE_BONUS


def calculate_social_score(
    social_media_info: Union[SocialMediaInfo, Mapping[str, Any], None]
) -> int:
    """
    Social presence score in [0, 100].

    +10 per platform found, +15 per verified profile, plus a followers tier
    bonus per profile with a known follower count. Accepts the fixed-platform
    model or any mapping of platform name -> metrics.
    """
    if not social_media_info:
        return 0

    if isinstance(social_media_info, SocialMediaInfo):
        profiles = list(social_media_info.platforms().values())
    else:
        profiles = list(social_media_info.values())

    score = len(profiles) * SOCIAL_POINTS_PER_PLATFORM

    for metrics in profiles:
        if metrics is None:
            continue
        verified = getattr(metrics, "verified", None)
        followers = getattr(metrics, "followers", None)
        if isinstance(metrics, Mapping):
            verified = metrics.get("verified")
            followers = metrics.get("followers")

        if verified:
            score += SOCIAL_POINTS_VERIFIED
        if followers:
            score += _follower_bonus(followers)

    return max(0, min(score, 100))


def is_unknown_platform(platform: Optional[str]) -> bool:
    return not platform or platform in UNKNOWN_PLATFORMS


# =============================================================================
# Validation & sanitizing
# =============================================================================

def validate_lead_input(data: Union[LeadInput, Mapping[str, Any]]) -> Tuple[bool, List[str]]:
    """Check required fields and the format of optional ones"""
    if isinstance(data, LeadInput):
        data = data.model_dump()

    errors = []

    company_name = data.get("company_name")
    if not isinstance(company_name, str) or not company_name.strip():
        errors.append("Company name is required")

    website_url = data.get("website_url")
    if website_url and _canonical_url(website_url) is None:
        errors.append("Invalid website URL")

    email = data.get("email")
    if email and not is_valid_email(email.strip()):
        errors.append("Invalid email address")

    return len(errors) == 0, errors


def sanitize_text(value: str) -> str:
    """Remove script blocks and HTML tags"""
    return _HTML_TAG.sub("", _SCRIPT_TAG.sub("", value)).strip()


def sanitize_for_storage(data: Any) -> Any:
    """Recursively sanitize strings in dicts and lists"""
    if isinstance(data, str):
        return sanitize_text(data)
    if isinstance(data, dict):
        return {key: sanitize_for_storage(value) for key, value in data.items()}
    if isinstance(data, list):
        return [sanitize_for_storage(item) for item in data]
    return data


# =============================================================================
# Stage
# =============================================================================

class DataNormalizationStage:
    """
    Build the canonical record from the lead input and raw fragments.
    """

    def process(
        self,
        lead: LeadInput,
        website_tech: Optional[WebsiteTechData] = None,
        social_media_info: Optional[SocialMediaInfo] = None,
        company_info: Optional[CompanyEnrichmentData] = None,
        whatsapp_enabled: Optional[bool] = None,
    ) -> NormalizedRecord:
        """
        Normalize one lead.

        Location comes from the input, falling back to the enrichment address.
        Industry comes from the enrichment category, falling back to the input.
        """
        company_info = company_info or CompanyEnrichmentData(name=lead.company_name)

        return NormalizedRecord(
            company_name=normalize_company_name(lead.company_name),
            website_url=normalize_url(lead.website_url),
            formatted_phone=normalize_phone(company_info.phone),
            formatted_email=normalize_email(company_info.email),
            location=parse_location(lead.location or company_info.address),
            industry_category=normalize_industry(company_info.category or lead.industry),
            tech_stack=normalize_tech_stack(website_tech),
            social_presence_score=calculate_social_score(social_media_info),
            whatsapp_enabled=bool(whatsapp_enabled),
        )
