"""
Proposition model package.

Propositions are server decisions scoped to a delivery surface. Each one
owns an ordered set of schema-tagged items and carries the provenance
(correlation id, activity id) used to report interactions.

Modules of interest:
- models: Proposition, PropositionItem and the PropositionInfo view.
- interactions: Event types and experience-event payloads for tracking.
"""
