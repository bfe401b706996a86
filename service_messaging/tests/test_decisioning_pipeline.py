"""
Unit tests for the decisioning pipeline.
"""

import json
import pytest

from prometheus_client import CollectorRegistry

from shared.errors import MalformedPayloadError, ExternalServiceError
from shared.logging import correlation_id_var
from shared.metrics import MetricsCollector
from shared.test_helpers import (
    TestDataFactory, MockCollaborators, TEST_SCOPE, TEST_PROPOSITION_ID, TEST_ITEM_ID
)
from service_messaging.app.schemas.models import FeedItem, AlertMessage
from service_messaging.app.propositions.interactions import PropositionEventType
from service_messaging.app.rules.models import EvaluationContext
from service_messaging.app.store.proposition_store import PropositionStore
from service_messaging.app.pipeline.decisioning import DecisioningPipeline
from service_messaging.app.pipeline.models import DecisionResult

INSIDE = {"~timestampu": 1700000000}
BEFORE = {"~timestampu": 1}


class TestDecisioningPipeline:
    """Test cases for DecisioningPipeline."""

    @pytest.fixture
    def metrics(self):
        """Metrics collector on its own registry."""
        return MetricsCollector("messaging-test", registry=CollectorRegistry())

    @pytest.fixture
    def store(self, metrics):
        """Create PropositionStore instance."""
        return PropositionStore(metrics=metrics)

    @pytest.fixture
    def pipeline(self, store, metrics):
        """Create DecisioningPipeline instance."""
        return DecisioningPipeline(store=store, metrics=metrics)

    def test_feed_item_inside_window(self, pipeline, store):
        """Test a feed item qualifies while the timestamp is inside the rule window."""
        result = pipeline.process(TestDataFactory.create_decision_event(), INSIDE)

        assert len(result.qualified) == 1
        assert result.unqualified == []
        assert result.qualified[0].items[0].unique_id == TEST_ITEM_ID

        assert len(result.content) == 1
        content = result.content[0]
        assert content.content == FeedItem(
            title="title",
            body="body",
            image_url="imageUrl",
            action_url="actionUrl",
            action_title="actionTitle",
        )
        assert content.consequence_id == "consequenceId"
        assert content.proposition_id == TEST_PROPOSITION_ID
        assert content.info.correlation_id == "correlationID"

        assert store.get(TEST_SCOPE) == result.qualified

    def test_feed_item_before_window(self, pipeline, store):
        """Test a feed item is unqualified before the rule window."""
        qualified, unqualified = pipeline.process(TestDataFactory.create_decision_event(), BEFORE)

        assert qualified == []
        assert len(unqualified) == 1
        assert unqualified[0].unique_id == TEST_PROPOSITION_ID
        assert store.get(TEST_SCOPE) == []

    def test_unqualified_batch_clears_scope(self, pipeline, store):
        """Test a later batch without qualified content empties the scope."""
        pipeline.process(TestDataFactory.create_decision_event(), INSIDE)
        assert store.get(TEST_SCOPE)

        pipeline.process(TestDataFactory.create_decision_event(), BEFORE)

        assert store.get(TEST_SCOPE) == []

    def test_reprocessing_is_idempotent(self, pipeline, store):
        """Test processing the same batch twice leaves the same store."""
        event = TestDataFactory.create_decision_event()

        pipeline.process(event, INSIDE)
        first = [p.to_payload() for p in store.get(TEST_SCOPE)]
        pipeline.process(event, INSIDE)

        assert [p.to_payload() for p in store.get(TEST_SCOPE)] == first

    def test_mixed_items_are_split(self, pipeline, store):
        """Test qualified and unqualified items of one proposition are separated."""
        expired = TestDataFactory.create_ruleset_item(
            item_id="expiredItem",
            content=json.dumps(TestDataFactory.create_feed_ruleset(
                TestDataFactory.create_timestamp_condition(1, 2)
            ))
        )
        proposition = TestDataFactory.create_proposition(
            items=[TestDataFactory.create_ruleset_item(), expired]
        )

        result = pipeline.process([proposition], INSIDE)

        assert [i.unique_id for i in result.qualified[0].items] == [TEST_ITEM_ID]
        assert [i.unique_id for i in result.unqualified[0].items] == ["expiredItem"]
        assert result.qualified[0].scope_details == result.unqualified[0].scope_details
        assert [i.unique_id for i in store.get(TEST_SCOPE)[0].items] == [TEST_ITEM_ID]

    def test_item_without_rules_qualifies(self, pipeline):
        """Test content without embedded rules is not gated."""
        proposition = TestDataFactory.create_proposition(items=[TestDataFactory.create_alert_item()])

        result = pipeline.process(proposition, BEFORE)

        assert len(result.qualified) == 1
        assert isinstance(result.content[0].content, AlertMessage)
        assert result.content[0].consequence_id is None

    def test_undecodable_item_without_rules(self, pipeline):
        """Test an item whose own content cannot be decoded is unqualified."""
        broken = TestDataFactory.create_alert_item()
        broken["data"]["content"].pop("defaultButton")
        proposition = TestDataFactory.create_proposition(items=[broken])

        result = pipeline.process(proposition, INSIDE)

        assert result.qualified == []
        assert len(result.unqualified) == 1

    def test_malformed_condition_is_reported(self, pipeline, metrics):
        """Test a malformed rule condition disqualifies the item with a diagnostic."""
        ruleset = TestDataFactory.create_feed_ruleset(
            {"type": "matcher", "definition": {"matcher": "between", "key": "~timestampu", "values": [1]}}
        )
        proposition = TestDataFactory.create_proposition(
            items=[TestDataFactory.create_ruleset_item(content=json.dumps(ruleset))]
        )

        result = pipeline.process(proposition, INSIDE)

        assert result.qualified == []
        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].code == "MALFORMED_CONDITION"

    def test_rule_with_incomparable_values_spares_siblings(self, pipeline, store):
        """Test a rule comparing a list against a map entry only disqualifies its own item."""
        ruleset = TestDataFactory.create_feed_ruleset(
            {"type": "matcher", "definition": {"matcher": "co", "key": "user", "values": [["gold"]]}}
        )
        odd = TestDataFactory.create_proposition(
            proposition_id="oddProposition",
            items=[TestDataFactory.create_ruleset_item(item_id="oddItem", content=json.dumps(ruleset))]
        )
        context = dict(INSIDE, user={"tier": "gold"})

        result = pipeline.process([TestDataFactory.create_proposition(), odd], context)

        assert [p.unique_id for p in result.qualified] == [TEST_PROPOSITION_ID]
        assert [p.unique_id for p in result.unqualified] == ["oddProposition"]
        assert [p.unique_id for p in store.get(TEST_SCOPE)] == [TEST_PROPOSITION_ID]

    def test_correlation_context_follows_each_proposition(self, pipeline, monkeypatch):
        """Test a proposition without a correlation id does not log the previous one."""
        seen = []
        judge_item = pipeline._judge_item

        def recording_judge_item(item, info, context):
            seen.append(correlation_id_var.get())
            return judge_item(item, info, context)

        monkeypatch.setattr(pipeline, "_judge_item", recording_judge_item)
        anonymous = TestDataFactory.create_proposition(
            proposition_id="anonymous",
            scope_details={"activity": {"id": "activityId"}}
        )

        pipeline.process([TestDataFactory.create_proposition(), anonymous], INSIDE)

        assert seen == ["correlationID", None]
        assert correlation_id_var.get() is None

    def test_invalid_proposition_is_skipped(self, pipeline):
        """Test one bad proposition does not drop its siblings."""
        event = TestDataFactory.create_decision_event([
            {"scope": TEST_SCOPE, "items": []},
            TestDataFactory.create_proposition(),
            "junk",
        ])

        result = pipeline.process(event, INSIDE)

        assert result.skipped == 2
        assert len(result.qualified) == 1

    @pytest.mark.parametrize("event", [None, "text", 42, {"payload": "nope"}, {"unrelated": True}])
    def test_malformed_event(self, pipeline, event):
        """Test events that cannot be read fail the batch."""
        with pytest.raises(MalformedPayloadError):
            pipeline.process(event, INSIDE)

    def test_malformed_event_leaves_store_alone(self, pipeline, store):
        """Test a failed batch does not touch stored content."""
        pipeline.process(TestDataFactory.create_decision_event(), INSIDE)

        with pytest.raises(MalformedPayloadError):
            pipeline.process({"payload": None}, INSIDE)

        assert len(store.get(TEST_SCOPE)) == 1

    def test_requested_scope_without_propositions_is_cleared(self, pipeline, store):
        """Test a refreshed surface with no propositions is emptied."""
        pipeline.process(TestDataFactory.create_decision_event(), INSIDE)

        pipeline.process([], INSIDE, requested_scopes=[TEST_SCOPE])

        assert store.get(TEST_SCOPE) == []

    def test_batch_only_touches_its_scopes(self, pipeline, store):
        """Test surfaces absent from a batch keep their content."""
        other = TestDataFactory.create_proposition(proposition_id="other", scope="mobileapp://other")
        pipeline.process([other], INSIDE)

        pipeline.process(TestDataFactory.create_decision_event(), BEFORE)

        assert len(store.get("mobileapp://other")) == 1

    def test_evaluation_context_object(self, pipeline):
        """Test an EvaluationContext is accepted as is."""
        result = pipeline.process(TestDataFactory.create_decision_event(), EvaluationContext(values=INSIDE))

        assert len(result.qualified) == 1

    def test_decisions_are_counted(self, pipeline, metrics):
        """Test batch outcomes are recorded as metrics."""
        pipeline.process(TestDataFactory.create_decision_event(), INSIDE)

        counter = metrics.get_metric("decisions_processed_total")
        evaluated = metrics.get_metric("propositions_evaluated_total")
        assert counter.labels(outcome="processed")._value.get() == 1
        assert evaluated.labels(result="qualified")._value.get() == 1


class TestPipelineCollaborators:
    """Test cases for refresh, render and report helpers."""

    @pytest.fixture
    def pipeline(self):
        """Create DecisioningPipeline with its own store."""
        return DecisioningPipeline()

    def test_refresh_fetches_and_processes(self, pipeline):
        """Test refresh processes the fetched payload for the surface."""
        fetcher = MockCollaborators.create_fetcher(TestDataFactory.create_decision_event())

        result = pipeline.refresh(TEST_SCOPE, fetcher, INSIDE)

        fetcher.fetch_decision_payload.assert_called_once_with(TEST_SCOPE)
        assert len(result.qualified) == 1
        assert len(pipeline.store.get(TEST_SCOPE)) == 1

    def test_refresh_with_empty_payload_clears_surface(self, pipeline):
        """Test refreshing a surface that now has nothing empties it."""
        pipeline.process(TestDataFactory.create_decision_event(), INSIDE)
        fetcher = MockCollaborators.create_fetcher({"payload": []})

        pipeline.refresh(TEST_SCOPE, fetcher, INSIDE)

        assert pipeline.store.get(TEST_SCOPE) == []

    def test_refresh_wraps_fetch_errors(self, pipeline):
        """Test fetch failures surface as external service errors."""
        fetcher = MockCollaborators.create_fetcher(error=ConnectionError("offline"))

        with pytest.raises(ExternalServiceError) as exc_info:
            pipeline.refresh(TEST_SCOPE, fetcher)

        assert "offline" in exc_info.value.message
        assert exc_info.value.details == {"surface": TEST_SCOPE}

    def test_render_qualified_tracks_display(self, pipeline):
        """Test rendering hands content over and reports displays."""
        result = pipeline.process(TestDataFactory.create_decision_event(), INSIDE)
        renderer = MockCollaborators.create_renderer()
        tracker = MockCollaborators.create_tracker()

        rendered = pipeline.render_qualified(result, renderer, tracker)

        assert rendered == 1
        renderer.render.assert_called_once_with(result.content[0].content)
        tracker.track_interaction.assert_called_once_with(
            "correlationID", "activityId", PropositionEventType.DISPLAY.value
        )

    def test_render_without_tracker(self, pipeline):
        """Test rendering works without a tracker."""
        result = pipeline.process(TestDataFactory.create_decision_event(), INSIDE)
        renderer = MockCollaborators.create_renderer()

        assert pipeline.render_qualified(result, renderer) == 1

    def test_report_unqualified(self, pipeline):
        """Test disqualifications are reported with provenance."""
        result = pipeline.process(TestDataFactory.create_decision_event(), BEFORE)
        tracker = MockCollaborators.create_tracker()

        reported = pipeline.report_unqualified(result, tracker)

        assert reported == 1
        tracker.track_interaction.assert_called_once_with(
            "correlationID", "activityId", PropositionEventType.DISQUALIFY.value
        )

    def test_report_skips_missing_provenance(self, pipeline):
        """Test propositions without scope details are not reported."""
        proposition = TestDataFactory.create_proposition(scope_details={})
        result = pipeline.process([proposition], BEFORE)
        tracker = MockCollaborators.create_tracker()

        assert pipeline.report_unqualified(result, tracker) == 0
        tracker.track_interaction.assert_not_called()

    def test_empty_result(self, pipeline):
        """Test an empty result renders and reports nothing."""
        renderer = MockCollaborators.create_renderer()
        tracker = MockCollaborators.create_tracker()

        assert pipeline.render_qualified(DecisionResult(), renderer, tracker) == 0
        assert pipeline.report_unqualified(DecisionResult(), tracker) == 0
