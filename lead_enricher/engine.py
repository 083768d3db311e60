"""
Lead Enrichment Engine - Main Orchestrator
==========================================
Runs the six-step enrichment pipeline for a lead:
  Fetch Website Technology → Fetch Social Media Presence →
  Fetch & Enrich Company Info (+ contact backfill) →
  Check WhatsApp Business API → Normalize Data → AI Lead Scoring

Each step is isolated: a failing or timed-out provider is recorded as a
failed step and the pipeline continues with whatever data it has. A lead only
ends FAILED when its record cannot be created or normalization/scoring fail.

Known limitation: calls for the same lead id are not serialized. Running
update_lead_score or retry_failed_lead while process_lead is in flight for
that id may interleave writes; callers needing strict consistency must
serialize per id.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from .config.settings import (
    LLM_CONFIG,
    PIPELINE_CONFIG,
    STEP_COMPANY,
    STEP_MESSAGING,
    STEP_NORMALIZE,
    STEP_SCORING,
    STEP_SOCIAL,
    STEP_TECHNOLOGY,
)
from .errors import (
    LeadCreationError,
    LeadNotFoundError,
    LeadProcessingError,
    LeadValidationError,
)
from .models.schemas import (
    CompanyEnrichmentData,
    HistoryAction,
    Lead,
    LeadHistoryEntry,
    LeadInput,
    LeadProcessingResult,
    LeadScoringResult,
    LeadStatus,
    MessagingStatus,
    NormalizedRecord,
    PotentialTag,
    ProcessingStep,
    ScoringOutcome,
    SocialMediaInfo,
    StepStatus,
    WebsiteTechData,
    utcnow,
)
from .providers.base import (
    BusinessInfoProvider,
    ContactExtractor,
    MessagingStatusProvider,
    SocialProvider,
    TechnologyProvider,
    TextGenerationProvider,
    call_provider,
)
from .providers.defaults import (
    DisabledMessagingProvider,
    EmptySocialProvider,
    NameOnlyBusinessInfoProvider,
    NoContactExtractor,
    UnknownTechnologyProvider,
)
from .stages.ai_scoring import AIScoringStage
from .stages.normalization import (
    DataNormalizationStage,
    normalize_url,
    sanitize_for_storage,
    validate_lead_input,
)
from .storage.repository import InMemoryLeadRepository, LeadRepository
from .utils.worker_pool import run_in_windows

M = TypeVar("M", bound=BaseModel)


def merge_contact_backfill(
    company_info: Optional[CompanyEnrichmentData],
    company_name: str,
    phone: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[CompanyEnrichmentData]:
    """
    Fill missing phone/email from scraped values.

    Enrichment provider values always win; scraped values only fill fields
    that are currently empty. Returns a new object, or the input unchanged
    when nothing was filled.
    """
    updates = {}
    if phone and not (company_info and company_info.phone):
        updates["phone"] = phone
    if email and not (company_info and company_info.email):
        updates["email"] = email

    if not updates:
        return company_info
    if company_info is None:
        return CompanyEnrichmentData(name=company_name, **updates)
    return company_info.model_copy(update=updates)


def _coerce(model: Type[M], value: Any) -> Optional[M]:
    """Accept provider output as a model instance or a plain dict"""
    if value is None or isinstance(value, model):
        return value
    if isinstance(value, dict):
        return model.model_validate(value)
    raise TypeError(f"Expected {model.__name__}, got {type(value).__name__}")


class LeadEnrichmentEngine:
    """
    Orchestrates providers, normalization and scoring for each lead.
    All collaborators are injected once and reused across leads.
    """

    def __init__(
        self,
        technology_provider: Optional[TechnologyProvider] = None,
        social_provider: Optional[SocialProvider] = None,
        business_info_provider: Optional[BusinessInfoProvider] = None,
        messaging_provider: Optional[MessagingStatusProvider] = None,
        contact_extractor: Optional[ContactExtractor] = None,
        repository: Optional[LeadRepository] = None,
        scoring_stage: Optional[AIScoringStage] = None,
        text_provider: Optional[TextGenerationProvider] = None,
        step_timeout: Optional[float] = None,
        batch_concurrency: Optional[int] = None,
    ):
        """
        Initialize the engine.

        Args:
            technology_provider: Website technology detection
            social_provider: Social profile search
            business_info_provider: Business information enrichment
            messaging_provider: Business messaging status check
            contact_extractor: Phone/email scraping for contact backfill
            repository: Lead storage (in-memory if not provided)
            scoring_stage: Scoring adapter (built from text_provider if not provided)
            text_provider: Generative text provider for AI scoring
            step_timeout: Upper bound in seconds for each external call
            batch_concurrency: Leads processed concurrently per batch window
        """
        self.technology_provider = technology_provider or UnknownTechnologyProvider()
        self.social_provider = social_provider or EmptySocialProvider()
        self.business_info_provider = business_info_provider or NameOnlyBusinessInfoProvider()
        self.messaging_provider = messaging_provider or DisabledMessagingProvider()
        self.contact_extractor = contact_extractor or NoContactExtractor()
        self.repository = repository or InMemoryLeadRepository()

        self.step_timeout = step_timeout if step_timeout is not None else PIPELINE_CONFIG["step_timeout"]
        self.batch_concurrency = batch_concurrency or PIPELINE_CONFIG["batch_concurrency"]

        # Timed-out calls keep holding a worker until they return
        self._executor = ThreadPoolExecutor(
            max_workers=max(8, self.batch_concurrency * 4),
            thread_name_prefix="provider",
        )

        self.normalizer = DataNormalizationStage()
        self.scoring_stage = scoring_stage or AIScoringStage(
            text_provider=text_provider,
            timeout=self.step_timeout,
            executor=self._executor,
        )

        self._stats_lock = threading.Lock()
        self.reset_stats()

    # =========================================================================
    # Single lead
    # =========================================================================

    def process_lead(self, lead_input: Union[LeadInput, Dict[str, Any]]) -> LeadProcessingResult:
        """
        Run the full pipeline for one lead.

        Raises:
            LeadValidationError: company_name missing; nothing is persisted
            LeadCreationError: the lead record could not be created
            LeadProcessingError: normalization or scoring failed (lead marked FAILED)
        """
        start_time = time.time()
        lead_input = self._prepare_input(lead_input)

        try:
            lead = self.repository.create(Lead(
                company_name=lead_input.company_name,
                website_url=lead_input.website_url,
                location=lead_input.location,
                industry=lead_input.industry,
                status=LeadStatus.PROCESSING,
            ))
        except Exception as e:
            logger.error(f"Could not create lead record for {lead_input.company_name}: {e}")
            self._bump("failed")
            raise LeadCreationError(f"Could not create lead record: {e}") from e

        logger.info(f"Processing lead {lead.id} ({lead_input.company_name})")
        steps: List[ProcessingStep] = []
        website_url = normalize_url(lead_input.website_url)

        # Step 1: Website technology
        tech_step = self._execute_step(
            STEP_TECHNOLOGY,
            lambda: _coerce(WebsiteTechData, self.technology_provider.detect(website_url))
            if website_url else None,
            timeout=self.step_timeout,
        )
        steps.append(tech_step)
        website_tech: Optional[WebsiteTechData] = tech_step.data

        # Step 2: Social media presence
        social_step = self._execute_step(
            STEP_SOCIAL,
            lambda: _coerce(
                SocialMediaInfo,
                self.social_provider.search(lead_input.company_name, website_url),
            ),
            timeout=self.step_timeout,
        )
        steps.append(social_step)
        social_media_info: Optional[SocialMediaInfo] = social_step.data

        # Step 3: Company info, then contact backfill from the website
        company_step = self._execute_step(
            STEP_COMPANY,
            lambda: _coerce(
                CompanyEnrichmentData,
                self.business_info_provider.enrich(
                    lead_input.company_name,
                    website_url,
                    lead_input.location,
                    lead_input.industry,
                ),
            ),
            timeout=self.step_timeout,
        )
        steps.append(company_step)
        company_info = self._backfill_contacts(
            lead_input.company_name, website_url, company_step.data
        )
        if company_step.status == StepStatus.COMPLETED:
            company_step.data = company_info

        # Step 4: Business messaging status
        messaging_step = self._execute_step(
            STEP_MESSAGING,
            lambda: _coerce(
                MessagingStatus,
                self.messaging_provider.check(
                    company_info.phone if company_info else None,
                    lead_input.company_name,
                ),
            ),
            timeout=self.step_timeout,
        )
        steps.append(messaging_step)
        messaging_status: Optional[MessagingStatus] = messaging_step.data
        whatsapp_enabled = bool(messaging_status and messaging_status.has_business_account)

        # Step 5: Normalization (local)
        normalize_step = self._execute_step(
            STEP_NORMALIZE,
            lambda: self.normalizer.process(
                lead_input, website_tech, social_media_info, company_info, whatsapp_enabled
            ),
        )
        steps.append(normalize_step)
        normalized: Optional[NormalizedRecord] = normalize_step.data

        # Step 6: Scoring (the AI call inside is bounded by its own timeout)
        scoring_step = self._execute_step(
            STEP_SCORING,
            lambda: self.scoring_stage.score_and_enrich_lead(
                lead_input.company_name,
                website_tech,
                social_media_info,
                company_info,
                normalized,
                whatsapp_enabled,
            ),
        )
        steps.append(scoring_step)
        outcome: Optional[ScoringOutcome] = scoring_step.data

        lead.website_tech = website_tech
        lead.social_media_info = social_media_info
        lead.company_info = company_info
        lead.messaging_status = messaging_status
        lead.normalized_data = normalized
        lead.processing_steps = steps
        lead.last_processed_at = utcnow()

        failed_critical = [
            step for step in (normalize_step, scoring_step)
            if step.status == StepStatus.FAILED
        ]
        if failed_critical:
            self._mark_failed(lead, failed_critical[0])
            raise LeadProcessingError(
                f"{failed_critical[0].step_name} failed: {failed_critical[0].error}",
                lead_id=lead.id,
                stage=lead.processing_stage,
            )

        lead.scoring = outcome.scoring
        lead.insights = outcome.insights
        lead.status = LeadStatus.COMPLETED

        try:
            lead = self.repository.save(lead)
            self.repository.append_history(LeadHistoryEntry(
                lead_id=lead.id,
                action=HistoryAction.LEAD_PROCESSED,
                new_score=outcome.scoring.score,
                changes={
                    "steps": [step.step_name for step in steps],
                    "failed_steps": [s.step_name for s in steps if s.status == StepStatus.FAILED],
                    "scoring_source": outcome.source,
                    "completed_at": utcnow().isoformat(),
                },
            ))
        except Exception as e:
            logger.error(f"Could not persist lead {lead.id}: {e}")
            self._bump("failed")
            raise LeadProcessingError(
                f"Could not persist lead: {e}", lead_id=lead.id, stage=STEP_SCORING
            ) from e

        total_time = (time.time() - start_time) * 1000
        self._bump("completed", processing_time_ms=total_time)
        logger.info(
            f"Lead {lead.id} completed: score {outcome.scoring.score} "
            f"({outcome.scoring.potential_tag.value}) in {total_time:.0f}ms"
        )

        return LeadProcessingResult(
            lead_id=lead.id,
            company_name=lead.company_name,
            website_url=lead.website_url,
            website_tech=website_tech,
            social_media_info=social_media_info,
            messaging_status=messaging_status,
            company_info_enriched=company_info,
            normalized_data=normalized,
            lead_score_and_notes=outcome.scoring,
            enriched_insights=outcome.insights,
            processing_steps=steps,
            status=LeadStatus.COMPLETED,
            created_at=lead.created_at,
            updated_at=lead.updated_at,
            total_processing_time_ms=round(total_time, 2),
        )

    # =========================================================================
    # Batch, retry, re-score
    # =========================================================================

    def process_batch_leads(
        self, inputs: List[Union[LeadInput, Dict[str, Any]]]
    ) -> List[LeadProcessingResult]:
        """
        Process leads in fixed-size concurrent windows.

        Failed leads are logged and left out, so the result may be shorter
        than the input. Successes keep their original relative order.
        """
        start_time = time.time()
        settled = run_in_windows(
            inputs,
            self.process_lead,
            window_size=self.batch_concurrency,
            thread_name_prefix="lead",
        )

        results = []
        for outcome in settled:
            if outcome.ok:
                results.append(outcome.value)
            else:
                logger.error(f"Batch processing error for {self._describe(outcome.item)}: {outcome.error}")

        logger.info(
            f"Batch finished: {len(results)}/{len(inputs)} leads processed "
            f"in {(time.time() - start_time) * 1000:.0f}ms"
        )
        return results

    def retry_failed_lead(self, lead_id: str) -> LeadProcessingResult:
        """Discard the stored lead and reprocess it from its raw input"""
        lead = self.repository.get(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)

        lead_input = lead.to_input()
        self.repository.delete(lead_id)
        logger.info(f"Retrying lead {lead_id} ({lead.company_name}) from scratch")
        return self.process_lead(lead_input)

    def update_lead_score(self, lead_id: str) -> LeadScoringResult:
        """
        Re-run scoring on the stored data without calling any enrichment
        provider, and record the score change in the history log.

        FAILED leads are refused: their stored data is incomplete, so they
        must go through retry_failed_lead instead.
        """
        lead = self.repository.get(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)

        if lead.status == LeadStatus.FAILED:
            raise LeadProcessingError(
                f"Lead {lead_id} failed at {lead.processing_stage}; use retry_failed_lead",
                lead_id=lead_id,
                stage=lead.processing_stage,
            )

        previous_score = lead.lead_score
        whatsapp_enabled = bool(lead.messaging_status and lead.messaging_status.has_business_account)

        outcome = self.scoring_stage.score_and_enrich_lead(
            lead.company_name,
            lead.website_tech,
            lead.social_media_info,
            lead.company_info,
            lead.normalized_data,
            whatsapp_enabled,
        )

        lead.scoring = outcome.scoring
        lead.insights = outcome.insights
        lead.last_processed_at = utcnow()
        self.repository.save(lead)

        self.repository.append_history(LeadHistoryEntry(
            lead_id=lead.id,
            action=HistoryAction.SCORE_UPDATED,
            previous_score=previous_score,
            new_score=outcome.scoring.score,
            changes={"reason": "Manual score update", "scoring_source": outcome.source},
        ))

        logger.info(f"Lead {lead_id} re-scored: {previous_score} -> {outcome.scoring.score}")
        return outcome.scoring

    # =========================================================================
    # Queries
    # =========================================================================

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        return self.repository.get(lead_id)

    def get_lead_history(self, lead_id: str, limit: Optional[int] = None) -> List[LeadHistoryEntry]:
        """Most recent history entries first"""
        limit = limit if limit is not None else PIPELINE_CONFIG["history_limit"]
        return self.repository.history(lead_id, limit=limit)

    def list_leads(
        self,
        status: Optional[LeadStatus] = None,
        potential_tag: Optional[PotentialTag] = None,
        min_score: Optional[int] = None,
        max_score: Optional[int] = None,
    ) -> List[Lead]:
        return self.repository.list(
            status=status,
            potential_tag=potential_tag,
            min_score=min_score,
            max_score=max_score,
        )

    def delete_lead(self, lead_id: str) -> None:
        self.repository.delete(lead_id)

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics"""
        with self._stats_lock:
            stats = dict(self.stats)
            stats["step_failures"] = dict(self.stats["step_failures"])
        if stats["total_processed"] > 0:
            stats["failure_rate"] = round(stats["failed"] / stats["total_processed"] * 100, 1)
        if stats["completed"] > 0:
            stats["avg_processing_time_ms"] = round(
                stats["total_processing_time_ms"] / stats["completed"], 2
            )
        return stats

    def reset_stats(self):
        """Reset engine statistics"""
        with self._stats_lock:
            self.stats = {
                "total_processed": 0,
                "completed": 0,
                "failed": 0,
                "step_failures": {},
                "total_processing_time_ms": 0,
            }

    def close(self):
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _prepare_input(self, lead_input: Union[LeadInput, Dict[str, Any]]) -> LeadInput:
        """Sanitize and validate caller input before anything is persisted"""
        if isinstance(lead_input, LeadInput):
            raw = lead_input.model_dump()
        elif isinstance(lead_input, Mapping):
            raw = dict(lead_input)
        else:
            raise LeadValidationError(["Lead input must be an object"])
        raw = sanitize_for_storage(raw)

        is_valid, errors = validate_lead_input(raw)
        company_name = raw.get("company_name")
        if not isinstance(company_name, str) or not company_name.strip():
            raise LeadValidationError(errors or ["Company name is required"])
        if not is_valid:
            logger.warning(f"Lead input for {company_name} has issues: {', '.join(errors)}")

        raw["company_name"] = company_name.strip()
        try:
            return LeadInput(**{key: raw.get(key) for key in LeadInput.model_fields})
        except ValidationError as e:
            raise LeadValidationError([str(err["msg"]) for err in e.errors()]) from e

    def _execute_step(
        self,
        step_name: str,
        fn: Callable[[], Any],
        timeout: Optional[float] = None,
    ) -> ProcessingStep:
        """
        Run one step and record its outcome. Never raises: failures and
        timeouts become a failed step.
        """
        step = ProcessingStep(
            step_name=step_name,
            status=StepStatus.IN_PROGRESS,
            started_at=utcnow(),
        )

        result = call_provider(
            step_name,
            fn,
            timeout=timeout,
            executor=self._executor if timeout is not None else None,
        )
        step.completed_at = utcnow()

        if result.ok:
            step.status = StepStatus.COMPLETED
            step.data = result.value
        else:
            step.status = StepStatus.FAILED
            step.error = str(result.error)
            logger.error(f'Step "{step_name}" failed: {result.error}')
            with self._stats_lock:
                failures = self.stats["step_failures"]
                failures[step_name] = failures.get(step_name, 0) + 1

        return step

    def _backfill_contacts(
        self,
        company_name: str,
        website_url: Optional[str],
        company_info: Optional[CompanyEnrichmentData],
    ) -> Optional[CompanyEnrichmentData]:
        """Scrape phone/email from the website when enrichment did not find them"""
        if not website_url:
            return company_info

        phone = email = None
        if not (company_info and company_info.phone):
            result = call_provider(
                "contact_extractor.phone",
                lambda: self.contact_extractor.extract_phone(website_url),
                timeout=self.step_timeout,
                executor=self._executor,
            )
            if result.ok:
                phone = result.value
            else:
                logger.warning(f"Phone extraction failed for {website_url}: {result.error}")

        if not (company_info and company_info.email):
            result = call_provider(
                "contact_extractor.email",
                lambda: self.contact_extractor.extract_email(website_url),
                timeout=self.step_timeout,
                executor=self._executor,
            )
            if result.ok:
                email = result.value
            else:
                logger.warning(f"Email extraction failed for {website_url}: {result.error}")

        return merge_contact_backfill(company_info, company_name, phone=phone, email=email)

    def _mark_failed(self, lead: Lead, failed_step: ProcessingStep):
        """Persist the FAILED status with the last known stage"""
        lead.status = LeadStatus.FAILED
        lead.processing_stage = failed_step.step_name
        logger.error(f"Lead {lead.id} failed at {failed_step.step_name}: {failed_step.error}")
        self._bump("failed")

        try:
            self.repository.save(lead)
            self.repository.append_history(LeadHistoryEntry(
                lead_id=lead.id,
                action=HistoryAction.LEAD_FAILED,
                changes={"stage": failed_step.step_name, "error": failed_step.error},
            ))
        except Exception as e:
            logger.error(f"Could not record failure for lead {lead.id}: {e}")

    def _bump(self, outcome: str, processing_time_ms: float = 0):
        with self._stats_lock:
            self.stats["total_processed"] += 1
            self.stats[outcome] += 1
            self.stats["total_processing_time_ms"] += processing_time_ms

    def _describe(self, lead_input: Any) -> str:
        if isinstance(lead_input, LeadInput):
            return lead_input.company_name
        if isinstance(lead_input, dict):
            return str(lead_input.get("company_name") or "<unnamed>")
        return repr(lead_input)


# =============================================================================
# Convenience Functions
# =============================================================================

def create_engine(
    llm_api_key: Optional[str] = None,
    llm_provider: Optional[str] = None,
    repository: Optional[LeadRepository] = None,
    step_timeout: Optional[float] = None,
    batch_concurrency: Optional[int] = None,
    **providers: Any,
) -> LeadEnrichmentEngine:
    """
    Factory function to create an engine from configuration.

    AI scoring is enabled when an API key is given or configured in the
    environment; otherwise scoring is deterministic. Provider keyword
    arguments (technology_provider, social_provider, ...) are passed through.

    Returns:
        Configured LeadEnrichmentEngine instance
    """
    from .providers.llm import ChatCompletionProvider

    text_provider = None
    api_key = llm_api_key or LLM_CONFIG.get("api_key")
    if api_key:
        text_provider = ChatCompletionProvider(api_key=api_key, provider=llm_provider)
    else:
        logger.info("No LLM API key configured, scoring will be deterministic")

    return LeadEnrichmentEngine(
        repository=repository,
        text_provider=text_provider,
        step_timeout=step_timeout,
        batch_concurrency=batch_concurrency,
        **providers,
    )
