"""
Decisioning pipeline: decode, judge, store and report proposition content.
"""

import time
from typing import Dict, Any, Optional, List, Tuple, Iterable

from shared.logging import get_logger, set_decision_context, clear_decision_context
from shared.errors import (
    MessagingException, MalformedPayloadError, MissingRequiredFieldError,
    UnknownSchemaError, ExternalServiceError
)
from shared.metrics import MetricsCollector
from shared.tracing import trace_operation
from ..schemas.decoder import decode
from ..propositions.models import Proposition, PropositionItem, PropositionInfo
from ..propositions.interactions import PropositionEventType
from ..rules.engine import ConditionEvaluator
from ..rules.models import ConditionDiagnostic, EvaluationContext, DEFAULT_MAX_DEPTH, as_evaluation_context
from ..store.proposition_store import PropositionStore
from .collaborators import DecisionPayloadFetcher, ContentRenderer, InteractionTracker
from .models import DecisionResult, QualifiedContent

PAYLOAD_KEY = "payload"
SCHEMA_CONSEQUENCE = "schema"


class DecisioningPipeline:
    """Turns decision payloads into qualified content and keeps the store current.

    The pipeline owns no process-wide state: the store it updates is the
    one it was constructed with.
    """

    def __init__(
        self,
        store: Optional[PropositionStore] = None,
        evaluator: Optional[ConditionEvaluator] = None,
        metrics: Optional[MetricsCollector] = None,
        strict_schemas: bool = False,
        max_depth: int = DEFAULT_MAX_DEPTH
    ):
        self.logger = get_logger("messaging.pipeline")
        self.metrics = metrics
        self.store = store if store is not None else PropositionStore(metrics=metrics)
        self.evaluator = evaluator if evaluator is not None else ConditionEvaluator(max_depth=max_depth, metrics=metrics)
        self.strict_schemas = strict_schemas

    def process(
        self,
        decision_event: Any,
        context: Any = None,
        requested_scopes: Optional[Iterable[str]] = None
    ) -> DecisionResult:
        """Judge every item of a decision batch and refresh the store.

        Raises MalformedPayloadError when the event cannot be read at all;
        any smaller problem only drops the affected entity.
        """
        with trace_operation("decision.process") as span:
            result = self._process(decision_event, context, requested_scopes)
            span.set_attribute("decision.qualified", len(result.qualified))
            span.set_attribute("decision.unqualified", len(result.unqualified))
            return result

    def _process(self, decision_event: Any, context: Any, requested_scopes: Optional[Iterable[str]]) -> DecisionResult:
        start_time = time.time()

        payloads = self._extract_payloads(decision_event)
        evaluation_context = as_evaluation_context(context)
        propositions, skipped = self._decode_propositions(payloads)

        result = DecisionResult(skipped=skipped)
        qualified_by_scope: Dict[str, List[Proposition]] = {}

        try:
            for proposition in propositions:
                qualified_by_scope.setdefault(proposition.scope, [])
                kept, dropped = self._judge_proposition(proposition, evaluation_context, result)

                if kept:
                    trimmed = proposition.with_items(kept)
                    result.qualified.append(trimmed)
                    qualified_by_scope[proposition.scope].append(trimmed)
                if dropped:
                    result.unqualified.append(proposition.with_items(dropped))
        finally:
            clear_decision_context()

        for scope in requested_scopes or ():
            qualified_by_scope.setdefault(scope, [])

        for scope, qualified in qualified_by_scope.items():
            self.store.upsert(scope, qualified)

        duration = time.time() - start_time
        result.evaluation_time_ms = duration * 1000

        self.logger.info(
            "Decision batch processed",
            propositions=len(propositions),
            qualified=len(result.qualified),
            unqualified=len(result.unqualified),
            skipped=skipped,
            diagnostics=len(result.diagnostics),
            evaluation_time_ms=round(result.evaluation_time_ms, 3)
        )
        if self.metrics is not None:
            self.metrics.record_decision("processed", len(result.qualified), len(result.unqualified), duration)

        return result

    def refresh(self, surface: str, fetcher: DecisionPayloadFetcher, context: Any = None) -> DecisionResult:
        """Fetch the payload for a surface and process it as a refresh of that surface.

        Fetch failures propagate to the caller; retrying is the fetcher's job.
        """
        try:
            payload = fetcher.fetch_decision_payload(surface)
        except MessagingException:
            raise
        except Exception as e:
            self.logger.error("Decision fetch failed", surface=surface, error=str(e))
            raise ExternalServiceError("decision-fetch", str(e), {"surface": surface}) from e

        return self.process(payload, context, requested_scopes=[surface])

    def render_qualified(
        self,
        result: DecisionResult,
        renderer: ContentRenderer,
        tracker: Optional[InteractionTracker] = None
    ) -> int:
        """Hand qualified content to the renderer, optionally reporting each display."""
        rendered = 0
        for entry in result.content:
            renderer.render(entry.content)
            rendered += 1
            if tracker is not None and entry.info is not None:
                tracker.track_interaction(
                    entry.info.correlation_id,
                    entry.info.activity_id,
                    PropositionEventType.DISPLAY.value
                )
        return rendered

    def report_unqualified(self, result: DecisionResult, tracker: InteractionTracker) -> int:
        """Report a disqualification for every unqualified proposition with provenance."""
        reported = 0
        for proposition in result.unqualified:
            info = proposition.info()
            if info is None:
                self.logger.debug(
                    "Skipping disqualify report without provenance",
                    proposition_id=proposition.unique_id
                )
                continue
            tracker.track_interaction(
                info.correlation_id,
                info.activity_id,
                PropositionEventType.DISQUALIFY.value
            )
            reported += 1
        return reported

    def _extract_payloads(self, decision_event: Any) -> List[Any]:
        if isinstance(decision_event, list):
            return decision_event

        if isinstance(decision_event, dict):
            if PAYLOAD_KEY in decision_event:
                payloads = decision_event[PAYLOAD_KEY]
                if isinstance(payloads, list):
                    return payloads
            elif "scope" in decision_event or "items" in decision_event:
                return [decision_event]

        self.logger.error("Malformed decision payload", payload_type=type(decision_event).__name__)
        if self.metrics is not None:
            self.metrics.record_decision("malformed", 0, 0, 0.0)
        raise MalformedPayloadError(
            "Decision event is neither a proposition, a list of propositions, nor a payload list"
        )

    def _decode_propositions(self, payloads: List[Any]) -> Tuple[List[Proposition], int]:
        propositions: List[Proposition] = []
        skipped = 0
        for payload in payloads:
            try:
                propositions.append(Proposition.from_payload(payload))
            except (MissingRequiredFieldError, MalformedPayloadError) as e:
                skipped += 1
                self.logger.warning("Skipping proposition", code=e.code, reason=e.message)
        return propositions, skipped

    def _judge_proposition(
        self,
        proposition: Proposition,
        context: EvaluationContext,
        result: DecisionResult
    ) -> Tuple[List[PropositionItem], List[PropositionItem]]:
        info = proposition.info()
        set_decision_context(
            surface=proposition.scope,
            correlation_id=info.correlation_id if info else None
        )

        kept: List[PropositionItem] = []
        dropped: List[PropositionItem] = []
        for item in proposition.items:
            content, diagnostics, qualifies = self._judge_item(item, info, context)
            result.diagnostics.extend(diagnostics)
            if qualifies:
                kept.append(item)
                result.content.extend(content)
            else:
                dropped.append(item)
        return kept, dropped

    def _judge_item(
        self,
        item: PropositionItem,
        info: Optional[PropositionInfo],
        context: EvaluationContext
    ) -> Tuple[List[QualifiedContent], List[ConditionDiagnostic], bool]:
        ruleset = item.embedded_rules(max_depth=self.evaluator.max_depth)

        if ruleset is None:
            # Content without rules is not gated
            try:
                variant = item.decode_content(strict=self.strict_schemas)
            except (MissingRequiredFieldError, UnknownSchemaError) as e:
                self.logger.warning("Item content not decodable", item_id=item.unique_id, reason=e.message)
                return [], [], False
            return [self._qualified_content(item, info, item.schema_tag, variant)], [], True

        matched_rules, diagnostics = self.evaluator.matching_rules(ruleset, context)
        if not matched_rules:
            return [], diagnostics, False

        content: List[QualifiedContent] = []
        for rule in matched_rules:
            for consequence in rule.consequences:
                if consequence.type != SCHEMA_CONSEQUENCE:
                    continue
                try:
                    variant = decode(consequence.schema, consequence.data, strict=self.strict_schemas)
                except (MissingRequiredFieldError, UnknownSchemaError) as e:
                    self.logger.warning(
                        "Consequence content not decodable",
                        item_id=item.unique_id,
                        consequence_id=consequence.id,
                        reason=e.message
                    )
                    continue
                content.append(self._qualified_content(item, info, consequence.schema, variant, consequence.id))

        return content, diagnostics, True

    def _qualified_content(self, item, info, schema, variant, consequence_id=None) -> QualifiedContent:
        return QualifiedContent(
            proposition_id=item.proposition_id,
            scope=item.scope,
            item_id=item.unique_id,
            schema=schema,
            content=variant,
            info=info,
            consequence_id=consequence_id,
        )
