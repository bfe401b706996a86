"""
Test helper functions and factory methods for the messaging decisioning core.
"""

import copy
import json
from typing import Dict, Any, Optional, List
from unittest.mock import MagicMock

FEED_SCHEMA = "https://ns.adobe.com/personalization/message/feed-item"
RULESET_SCHEMA = "https://ns.adobe.com/personalization/ruleset-item"
ALERT_SCHEMA = "https://ns.adobe.com/personalization/message/native-alert"
JSON_SCHEMA = "https://ns.adobe.com/personalization/json-content-item"

TEST_SCOPE = "mobileapp://mockScope"
TEST_PROPOSITION_ID = "uniqueId"
TEST_ITEM_ID = "uniqueItemId"

RULE_START = 1686066397
RULE_END = 1717688797


class TestDataFactory:
    """Factory for creating test data."""

    __test__ = False

    @staticmethod
    def create_scope_details(correlation_id: str = "correlationID", activity_id: str = "activityId") -> Dict[str, Any]:
        """Create scope details as delivered by the decisioning provider."""
        return {
            "decisionProvider": "AJO",
            "correlationID": correlation_id,
            "characteristics": {"eventToken": "eventToken"},
            "activity": {"id": activity_id},
        }

    @staticmethod
    def create_feed_item_data() -> Dict[str, Any]:
        """Create the data of a feed-item consequence."""
        return {
            "expiryDate": RULE_END,
            "publishedDate": RULE_END,
            "contentType": "application/json",
            "meta": {
                "surface": "mobileapp://mockApp/feeds/testFeed",
                "feedName": "testFeed",
                "campaignName": "testCampaign",
            },
            "content": {
                "actionUrl": "actionUrl",
                "actionTitle": "actionTitle",
                "title": "title",
                "body": "body",
                "imageUrl": "imageUrl",
            },
        }

    @staticmethod
    def create_timestamp_condition(start: int = RULE_START, end: int = RULE_END) -> Dict[str, Any]:
        """Create an 'and' group bounding ~timestampu to [start, end]."""
        return {
            "type": "group",
            "definition": {
                "conditions": [
                    {"type": "matcher", "definition": {"matcher": "ge", "key": "~timestampu", "values": [start]}},
                    {"type": "matcher", "definition": {"matcher": "le", "key": "~timestampu", "values": [end]}},
                ],
                "logic": "and",
            },
        }

    @staticmethod
    def create_feed_ruleset(condition: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Create a rules document releasing one feed item."""
        return {
            "version": 1,
            "rules": [
                {
                    "consequences": [
                        {
                            "type": "schema",
                            "id": "consequenceId",
                            "detail": {
                                "schema": FEED_SCHEMA,
                                "data": TestDataFactory.create_feed_item_data(),
                                "id": "uniqueDetailId",
                            },
                        }
                    ],
                    "condition": condition if condition is not None else TestDataFactory.create_timestamp_condition(),
                }
            ],
        }

    @staticmethod
    def create_feed_ruleset_content() -> str:
        """Create the feed rules document as the JSON text carried in item data."""
        return json.dumps(TestDataFactory.create_feed_ruleset(), separators=(",", ":"))

    @staticmethod
    def create_ruleset_item(item_id: str = TEST_ITEM_ID, content: Any = None) -> Dict[str, Any]:
        """Create a proposition item embedding a rules document."""
        return {
            "id": item_id,
            "schema": RULESET_SCHEMA,
            "data": {
                "content": content if content is not None else TestDataFactory.create_feed_ruleset_content(),
            },
        }

    @staticmethod
    def create_alert_item(item_id: str = "alertItemId") -> Dict[str, Any]:
        """Create a proposition item carrying a native alert without rules."""
        return {
            "id": item_id,
            "schema": ALERT_SCHEMA,
            "data": {
                "content": {
                    "title": "Sale",
                    "message": "Everything is 10% off",
                    "defaultButton": "OK",
                    "cancelButton": "Cancel",
                    "style": "alert",
                }
            },
        }

    @staticmethod
    def create_proposition(
        proposition_id: str = TEST_PROPOSITION_ID,
        scope: str = TEST_SCOPE,
        items: Optional[List[Dict[str, Any]]] = None,
        scope_details: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Create a proposition wire map."""
        return {
            "id": proposition_id,
            "scope": scope,
            "scopeDetails": scope_details if scope_details is not None else TestDataFactory.create_scope_details(),
            "items": items if items is not None else [TestDataFactory.create_ruleset_item()],
        }

    @staticmethod
    def create_decision_event(propositions: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """Create decision event data wrapping propositions in a 'payload' list."""
        return {
            "payload": copy.deepcopy(propositions) if propositions is not None
            else [TestDataFactory.create_proposition()],
            "requestEventId": "requestEventId",
        }


class MockCollaborators:
    """Mock collaborators for pipeline tests."""

    __test__ = False

    @staticmethod
    def create_fetcher(payload: Any = None, error: Optional[Exception] = None) -> MagicMock:
        """Create a decision payload fetcher returning ``payload`` or raising ``error``."""
        fetcher = MagicMock()
        if error is not None:
            fetcher.fetch_decision_payload.side_effect = error
        else:
            fetcher.fetch_decision_payload.return_value = payload
        return fetcher

    @staticmethod
    def create_renderer() -> MagicMock:
        """Create a content renderer."""
        renderer = MagicMock()
        renderer.render.return_value = None
        return renderer

    @staticmethod
    def create_tracker() -> MagicMock:
        """Create an interaction tracker."""
        tracker = MagicMock()
        tracker.track_interaction.return_value = None
        return tracker
