"""
Boundaries to the collaborators around the decisioning core.

The core never fetches, renders or sends anything itself; these protocols
describe what it expects from whoever does.
"""

from typing import Any, Protocol, runtime_checkable

from ..schemas.models import ContentVariant


@runtime_checkable
class DecisionPayloadFetcher(Protocol):
    """Retrieves the raw decision payload for a surface."""

    def fetch_decision_payload(self, surface: str) -> Any:
        ...


@runtime_checkable
class ContentRenderer(Protocol):
    """Presents qualified content to the user."""

    def render(self, content: ContentVariant) -> None:
        ...


@runtime_checkable
class InteractionTracker(Protocol):
    """Reports interactions back to the origin system."""

    def track_interaction(self, correlation_id: str, activity_id: str, event_type: str) -> None:
        ...
