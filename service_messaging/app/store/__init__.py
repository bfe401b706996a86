"""
Store package.

Provides the in-memory PropositionStore holding the currently qualified
propositions per surface, with replace-on-refresh semantics and a
reader/writer lock per scope.
"""
