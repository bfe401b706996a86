"""
Messaging decisioning service.
"""

from dataclasses import asdict
from datetime import datetime

from fastapi import HTTPException, Query

from shared.base_service import BaseService
from shared.errors import MessagingException

from .rules.engine import ConditionEvaluator
from .rules.models import EvaluationContext
from .store.proposition_store import PropositionStore
from .pipeline.decisioning import DecisioningPipeline
from .pipeline.models import DecisionRequest, DecisionResponse, PropositionListResponse


class MessagingService(BaseService):
    """Decisioning service over an in-memory proposition store."""

    def __init__(self):
        super().__init__("messaging", 8013)

        self.store = PropositionStore(metrics=self.metrics)
        self.evaluator = ConditionEvaluator(
            max_depth=self.config.max_condition_depth,
            metrics=self.metrics
        )
        self.pipeline = DecisioningPipeline(
            store=self.store,
            evaluator=self.evaluator,
            metrics=self.metrics,
            strict_schemas=self.config.strict_schemas
        )

        self._setup_messaging_routes()

    def _setup_messaging_routes(self):
        """Set up decisioning-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "messaging",
                "message": "Messaging decisioning service",
                "version": "1.0.0",
                "capabilities": ["schema_decoding", "rule_evaluation", "proposition_store"]
            }

        @self.app.post("/decisions", response_model=DecisionResponse)
        def process_decisions(request: DecisionRequest):
            """Judge a decision payload and refresh the stored surfaces."""
            try:
                context = EvaluationContext.current(values=request.context)
                result = self.pipeline.process(
                    request.payload,
                    context,
                    requested_scopes=request.requested_scopes
                )

                return DecisionResponse(
                    qualified=[p.to_payload() for p in result.qualified],
                    unqualified=[p.to_payload() for p in result.unqualified],
                    diagnostics=[asdict(d) for d in result.diagnostics],
                    skipped=result.skipped,
                    evaluation_time_ms=result.evaluation_time_ms
                )

            except MessagingException:
                raise
            except Exception as e:
                self.logger.error("Error processing decisions", error=str(e))
                raise HTTPException(status_code=500, detail="Internal server error")

        @self.app.get("/propositions/stats")
        def get_stats():
            """Get proposition store statistics."""
            return {
                "store": self.store.get_store_stats(),
                "timestamp": datetime.now().isoformat()
            }

        @self.app.get("/propositions", response_model=PropositionListResponse)
        def get_propositions(scope: str = Query(..., min_length=1, description="Surface to read")):
            """Get the qualified propositions stored for a surface."""
            propositions = self.store.get(scope)
            return PropositionListResponse(
                scope=scope,
                propositions=[p.to_payload() for p in propositions],
                total=len(propositions)
            )

        @self.app.delete("/propositions")
        def delete_propositions(scope: str = Query(..., min_length=1, description="Surface to clear")):
            """Forget the propositions stored for a surface."""
            if not self.store.remove(scope):
                raise HTTPException(status_code=404, detail="Scope not found")

            self.logger.info("Scope cleared", scope=scope)
            return {"success": True, "message": "Scope cleared successfully"}

    async def _check_dependencies(self):
        """The store is in memory; report its size."""
        stats = self.store.get_store_stats()
        return {"proposition_store": f"ok ({stats['total_scopes']} scopes)"}


def create_app():
    """Create messaging service application."""
    service = MessagingService()
    return service.app


if __name__ == "__main__":
    service = MessagingService()
    service.run()
