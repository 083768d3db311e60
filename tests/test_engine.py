from unittest.mock import Mock

import pytest

from lead_enricher.config.settings import PIPELINE_STEPS, STEP_COMPANY, STEP_NORMALIZE, STEP_TECHNOLOGY
from lead_enricher.engine import merge_contact_backfill
from lead_enricher.errors import (
    LeadCreationError,
    LeadNotFoundError,
    LeadProcessingError,
    LeadValidationError,
)
from lead_enricher.models.schemas import (
    CompanyEnrichmentData,
    HistoryAction,
    LeadInput,
    LeadStatus,
    PotentialTag,
    StepStatus,
)
from lead_enricher.providers.base import TextGenerationProvider
from lead_enricher.storage.repository import InMemoryLeadRepository
from tests.conftest import (
    FakeBusinessInfoProvider,
    FakeContactExtractor,
    FakeTechnologyProvider,
)

ACME = {"company_name": "Acme Corp.", "website_url": "acme.com"}


class FlakyRepository(InMemoryLeadRepository):
    """Refuses to create leads with the given company names"""

    def __init__(self, reject):
        super().__init__()
        self.reject = set(reject)

    def create(self, lead):
        if lead.company_name in self.reject:
            raise ConnectionError("database unavailable")
        return super().create(lead)


class TestProcessLead:
    """Single lead through the full pipeline."""

    def test_six_ordered_terminal_steps(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        result = engine.process_lead(ACME)

        assert [s.step_name for s in result.processing_steps] == PIPELINE_STEPS
        for step in result.processing_steps:
            assert step.status == StepStatus.COMPLETED
            assert step.started_at is not None
            assert step.completed_at is not None

    def test_rich_lead_scored_and_persisted(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        result = engine.process_lead(ACME)

        assert result.status == LeadStatus.COMPLETED
        assert result.lead_score_and_notes.score == 81
        assert result.lead_score_and_notes.potential_tag == PotentialTag.HIGH
        assert result.normalized_data.company_name == "Acme"
        assert result.normalized_data.website_url == "https://acme.com"

        lead = engine.get_lead(result.lead_id)
        assert lead.status == LeadStatus.COMPLETED
        assert lead.company_name == "Acme Corp."
        assert lead.lead_score == 81
        assert lead.company_info.category == "ecommerce"
        assert len(lead.processing_steps) == 6

    def test_providers_receive_normalized_url(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        engine.process_lead(ACME)

        assert rich_providers["technology_provider"].calls == ["https://acme.com"]
        assert rich_providers["social_provider"].calls == [("Acme Corp.", "https://acme.com")]
        assert rich_providers["messaging_provider"].calls == [("+1 512 555 0199", "Acme Corp.")]

    def test_all_providers_fail(self, make_engine, failing_providers):
        engine = make_engine(**failing_providers)
        result = engine.process_lead(ACME)

        assert result.status == LeadStatus.COMPLETED
        statuses = [s.status for s in result.processing_steps]
        assert statuses == [StepStatus.FAILED] * 4 + [StepStatus.COMPLETED] * 2
        assert "detect unavailable" in result.processing_steps[0].error

        factors = result.lead_score_and_notes.scoring_factors
        assert factors.automation_potential == 5
        assert factors.website_quality == 0
        assert factors.social_activity == 0
        assert factors.tech_readiness == 0
        assert factors.business_maturity == 0
        assert result.lead_score_and_notes.potential_tag == PotentialTag.LOW

    def test_no_website_skips_technology(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        result = engine.process_lead({"company_name": "Fit Hub"})

        tech_step = result.processing_steps[0]
        assert tech_step.status == StepStatus.COMPLETED
        assert tech_step.data is None
        assert rich_providers["technology_provider"].calls == []

    def test_step_timeout(self, make_engine, rich_providers):
        rich_providers["technology_provider"] = FakeTechnologyProvider(delay=0.5)
        engine = make_engine(step_timeout=0.05, **rich_providers)
        result = engine.process_lead(ACME)

        tech_step = result.processing_steps[0]
        assert tech_step.step_name == STEP_TECHNOLOGY
        assert tech_step.status == StepStatus.FAILED
        assert "timed out" in tech_step.error
        assert result.status == LeadStatus.COMPLETED

    def test_dict_provider_output_accepted(self, make_engine, rich_providers):
        rich_providers["technology_provider"] = FakeTechnologyProvider(data={"platform": "Wix"})
        engine = make_engine(**rich_providers)
        result = engine.process_lead(ACME)

        assert result.website_tech.platform == "Wix"

    def test_ai_scoring_used_when_configured(self, make_engine, rich_providers):
        text_provider = Mock(spec=TextGenerationProvider)
        text_provider.complete.return_value = {"notes": "From the model."}
        engine = make_engine(text_provider=text_provider, **rich_providers)
        result = engine.process_lead(ACME)

        assert result.lead_score_and_notes.notes == "From the model."
        assert result.lead_score_and_notes.score == 81
        assert engine.get_lead_history(result.lead_id)[0].changes["scoring_source"] == "ai"


class TestValidationAndFailures:
    def test_empty_company_name_rejected(self, make_engine):
        engine = make_engine()

        with pytest.raises(LeadValidationError):
            engine.process_lead({"company_name": "   ", "website_url": "acme.com"})
        assert engine.list_leads() == []

    @pytest.mark.parametrize("lead_input", ["Acme", None, ["Acme"]])
    def test_non_object_input_rejected(self, make_engine, lead_input):
        engine = make_engine()

        with pytest.raises(LeadValidationError, match="Lead input must be an object"):
            engine.process_lead(lead_input)
        assert engine.list_leads() == []

    def test_markup_only_company_name_rejected(self, make_engine):
        engine = make_engine()

        with pytest.raises(LeadValidationError):
            engine.process_lead({"company_name": "<b></b>"})

    def test_input_sanitized_before_persistence(self, make_engine):
        engine = make_engine()
        result = engine.process_lead({"company_name": "<b>Acme</b> Inc", "industry": "<script>x</script>retail"})

        lead = engine.get_lead(result.lead_id)
        assert lead.company_name == "Acme Inc"
        assert lead.industry == "retail"

    def test_invalid_url_only_warns(self, make_engine):
        engine = make_engine()
        result = engine.process_lead({"company_name": "Acme", "website_url": "http://exa mple.com"})

        assert result.status == LeadStatus.COMPLETED

    def test_creation_failure(self, make_engine):
        engine = make_engine(repository=FlakyRepository(reject=["Acme Corp."]))

        with pytest.raises(LeadCreationError):
            engine.process_lead(ACME)
        assert engine.get_stats()["failed"] == 1

    def test_normalization_failure_marks_lead_failed(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        engine.normalizer = Mock()
        engine.normalizer.process.side_effect = RuntimeError("bad record")

        with pytest.raises(LeadProcessingError) as exc_info:
            engine.process_lead(ACME)

        error = exc_info.value
        assert error.stage == STEP_NORMALIZE
        lead = engine.get_lead(error.lead_id)
        assert lead.status == LeadStatus.FAILED
        assert lead.processing_stage == STEP_NORMALIZE
        assert len(lead.processing_steps) == 6
        assert lead.website_tech.platform == "Shopify"

        history = engine.get_lead_history(error.lead_id)
        assert history[0].action == HistoryAction.LEAD_FAILED

    def test_scoring_failure_marks_lead_failed(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        engine.scoring_stage = Mock()
        engine.scoring_stage.score_and_enrich_lead.side_effect = RuntimeError("boom")

        with pytest.raises(LeadProcessingError):
            engine.process_lead(ACME)

        failed = engine.list_leads(status=LeadStatus.FAILED)
        assert len(failed) == 1
        assert failed[0].scoring is None


class TestContactBackfill:
    def test_fills_only_missing_fields(self, make_engine, rich_providers):
        extractor = FakeContactExtractor(phone="+44 20 7031 3000", email="Sales@acme.com")
        rich_providers["contact_extractor"] = extractor
        engine = make_engine(**rich_providers)

        result = engine.process_lead(ACME)

        company = result.company_info_enriched
        assert company.phone == "+1 512 555 0199"
        assert company.email == "Sales@acme.com"
        assert extractor.phone_calls == []
        assert extractor.email_calls == ["https://acme.com"]
        assert result.processing_steps[2].data.email == "Sales@acme.com"
        assert result.normalized_data.formatted_email == "sales@acme.com"

    def test_backfill_after_provider_failure(self, make_engine, failing_providers):
        failing_providers["contact_extractor"] = FakeContactExtractor(email="hello@acme.com")
        engine = make_engine(**failing_providers)

        result = engine.process_lead(ACME)

        assert result.processing_steps[2].step_name == STEP_COMPANY
        assert result.processing_steps[2].status == StepStatus.FAILED
        assert result.company_info_enriched == CompanyEnrichmentData(name="Acme Corp.", email="hello@acme.com")

    def test_no_website_no_backfill(self, make_engine, rich_providers):
        extractor = FakeContactExtractor(phone="+44 20 7031 3000")
        rich_providers["contact_extractor"] = extractor
        rich_providers["business_info_provider"] = FakeBusinessInfoProvider(
            data=CompanyEnrichmentData(name="Fit Hub")
        )
        engine = make_engine(**rich_providers)

        result = engine.process_lead({"company_name": "Fit Hub"})

        assert result.company_info_enriched.phone is None
        assert extractor.phone_calls == []

    def test_merge_precedence(self):
        company = CompanyEnrichmentData(name="Acme", phone="111")

        merged = merge_contact_backfill(company, "Acme", phone="222", email="a@acme.com")

        assert merged.phone == "111"
        assert merged.email == "a@acme.com"
        assert company.email is None
        assert merge_contact_backfill(company, "Acme") is company
        assert merge_contact_backfill(None, "Acme") is None


class TestBatchProcessing:
    def test_failed_creation_dropped_order_kept(self, make_engine):
        leads = [{"company_name": f"Lead {i}"} for i in range(1, 6)]
        engine = make_engine(repository=FlakyRepository(reject=["Lead 3"]), batch_concurrency=2)

        results = engine.process_batch_leads(leads)

        assert [r.company_name for r in results] == ["Lead 1", "Lead 2", "Lead 4", "Lead 5"]
        assert len(engine.list_leads()) == 4

    def test_invalid_inputs_dropped(self, make_engine):
        engine = make_engine()
        results = engine.process_batch_leads([
            {"company_name": ""},
            LeadInput(company_name="Acme"),
        ])

        assert [r.company_name for r in results] == ["Acme"]

    def test_empty_batch(self, make_engine):
        assert make_engine().process_batch_leads([]) == []


class TestLeadLifecycle:
    """Retry, re-score, queries and stats."""

    def test_retry_failed_lead(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        normalizer = engine.normalizer
        engine.normalizer = Mock()
        engine.normalizer.process.side_effect = RuntimeError("bad record")

        with pytest.raises(LeadProcessingError) as exc_info:
            engine.process_lead(ACME)
        failed_id = exc_info.value.lead_id

        engine.normalizer = normalizer
        result = engine.retry_failed_lead(failed_id)

        assert result.status == LeadStatus.COMPLETED
        assert result.lead_id != failed_id
        assert result.company_name == "Acme Corp."
        assert engine.get_lead(failed_id) is None
        assert engine.get_lead_history(failed_id) == []

    def test_retry_unknown_lead(self, make_engine):
        with pytest.raises(LeadNotFoundError):
            make_engine().retry_failed_lead("missing")

    def test_update_lead_score(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        result = engine.process_lead(ACME)
        technology = rich_providers["technology_provider"]

        scoring = engine.update_lead_score(result.lead_id)

        assert scoring.score == 81
        assert technology.calls == ["https://acme.com"]

        history = engine.get_lead_history(result.lead_id)
        assert [h.action for h in history] == [HistoryAction.SCORE_UPDATED, HistoryAction.LEAD_PROCESSED]
        assert history[0].previous_score == 81
        assert history[0].new_score == 81
        assert history[1].changes["steps"] == PIPELINE_STEPS

    def test_update_failed_lead_refused(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        engine.normalizer = Mock()
        engine.normalizer.process.side_effect = RuntimeError("bad record")
        with pytest.raises(LeadProcessingError) as exc_info:
            engine.process_lead(ACME)
        failed_id = exc_info.value.lead_id

        with pytest.raises(LeadProcessingError, match="retry_failed_lead"):
            engine.update_lead_score(failed_id)

        lead = engine.get_lead(failed_id)
        assert lead.status == LeadStatus.FAILED
        assert lead.scoring is None
        assert [h.action for h in engine.get_lead_history(failed_id)] == [HistoryAction.LEAD_FAILED]

    def test_update_unknown_lead(self, make_engine):
        with pytest.raises(LeadNotFoundError):
            make_engine().update_lead_score("missing")

    def test_history_limited_to_ten(self, make_engine):
        engine = make_engine()
        lead_id = engine.process_lead({"company_name": "Acme"}).lead_id
        for _ in range(12):
            engine.update_lead_score(lead_id)

        assert len(engine.get_lead_history(lead_id)) == 10
        assert len(engine.get_lead_history(lead_id, limit=20)) == 13

    def test_list_leads_filters_and_order(self, make_engine, rich_providers):
        engine = make_engine(**rich_providers)
        engine.process_lead(ACME)
        plain = make_engine()
        plain.repository = engine.repository
        plain.process_lead({"company_name": "Fit Hub"})

        scores = [lead.lead_score for lead in engine.list_leads()]
        assert scores == [81, 5]
        assert [l.company_name for l in engine.list_leads(potential_tag=PotentialTag.HIGH)] == ["Acme Corp."]
        assert [l.lead_score for l in engine.list_leads(min_score=10)] == [81]
        assert [l.lead_score for l in engine.list_leads(max_score=10)] == [5]
        assert engine.list_leads(status=LeadStatus.FAILED) == []

    def test_delete_lead(self, make_engine):
        engine = make_engine()
        lead_id = engine.process_lead({"company_name": "Acme"}).lead_id

        engine.delete_lead(lead_id)

        assert engine.get_lead(lead_id) is None
        with pytest.raises(LeadNotFoundError):
            engine.delete_lead(lead_id)

    def test_stats(self, make_engine, failing_providers):
        engine = make_engine(**failing_providers)
        engine.process_lead(ACME)
        with pytest.raises(LeadValidationError):
            engine.process_lead({"company_name": ""})

        stats = engine.get_stats()
        assert stats["total_processed"] == 1
        assert stats["completed"] == 1
        assert stats["step_failures"][STEP_TECHNOLOGY] == 1
        assert "avg_processing_time_ms" in stats

        engine.reset_stats()
        assert engine.get_stats()["total_processed"] == 0
