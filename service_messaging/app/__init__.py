"""
Messaging decisioning service package.

Decides which server-delivered content currently qualifies for display
on each surface. It provides:

- app.schemas: Typed content variants decoded from schema-tagged payloads.
- app.propositions: Propositions, their items and provenance.
- app.rules: Rule model, parser and condition evaluator.
- app.store: In-memory store of qualified propositions per surface.
- app.pipeline: Decisioning pipeline and collaborator boundaries.
- app.main: HTTP surface over the pipeline and store.

Guidelines:
- Decoding and evaluation are pure; the store is the only shared state.
- Bad entities are skipped, never fatal for the whole batch.
- Keep evaluation deterministic and observable (metrics + logs).
"""
