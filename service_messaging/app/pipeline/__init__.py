"""
Decisioning pipeline package.

Orchestrates one refresh cycle: decode a decision payload into
propositions, evaluate the rules embedded in each item, store the
qualified propositions per surface and return both partitions so the
caller can render content and report disqualifications.

Modules of interest:
- decisioning: DecisioningPipeline.
- models: DecisionResult, QualifiedContent and the HTTP request/response models.
- collaborators: Protocols for the fetcher, renderer and tracker.
"""
