# Enrichment provider interfaces and defaults
from .base import (
    BusinessInfoProvider,
    ContactExtractor,
    MessagingStatusProvider,
    SocialProvider,
    TechnologyProvider,
    TextGenerationProvider,
    call_provider,
)
