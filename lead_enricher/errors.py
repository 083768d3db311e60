"""
Exception hierarchy for the Lead Enrichment Engine

- ProviderFailure: one enrichment source failed; recorded as a failed step.
- TextGenerationError: the AI call failed; recovered by deterministic scoring.
- LeadValidationError: required input missing; raised before persistence.
- LeadProcessingError: normalization/scoring failed or the lead record could
  not be created; the lead is marked FAILED and the error reaches the caller.
"""

from typing import List, Optional


class LeadEnricherError(Exception):
    """Base class for all engine errors"""


class LeadValidationError(LeadEnricherError):
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class ProviderFailure(LeadEnricherError):
    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderTimeout(ProviderFailure):
    def __init__(self, provider: str, timeout: float):
        self.timeout = timeout
        super().__init__(provider, f"timed out after {timeout:g}s")


class TextGenerationError(LeadEnricherError):
    """Generative call failed or returned unusable output"""


class LeadProcessingError(LeadEnricherError):
    def __init__(self, message: str, lead_id: Optional[str] = None, stage: Optional[str] = None):
        self.lead_id = lead_id
        self.stage = stage
        super().__init__(message)


class LeadCreationError(LeadProcessingError):
    """The initial lead record could not be persisted"""


class LeadNotFoundError(LeadEnricherError):
    def __init__(self, lead_id: str):
        self.lead_id = lead_id
        super().__init__(f"Lead not found: {lead_id}")
