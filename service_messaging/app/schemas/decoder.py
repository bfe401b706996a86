"""
Decode and encode schema-tagged payloads.

There is one decode function and one encode function per schema tag.
Unrecognized tags decode to ``UnknownContent`` so that new server-side
content kinds degrade gracefully instead of failing the batch.
"""

import json
from typing import Dict, Any, Optional, Tuple, Callable

from shared.logging import get_logger
from shared.errors import MissingRequiredFieldError, UnknownSchemaError
from .models import (
    SchemaType, ContentVariant,
    FeedItem, AlertMessage, InAppMessage, ContentCard,
    CodeBasedContent, RulesetContent, UnknownContent,
    FeedItemBuilder, AlertBuilder, InAppMessageBuilder,
    ContentCardBuilder, CodeBasedContentBuilder,
)

logger = get_logger("messaging.schemas.decoder")

CONTENT_KEY = "content"
CONTENT_TYPE_KEY = "contentType"


def _opt_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _opt_map(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _content_map(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return the ``content`` value as a map, parsing JSON text if needed."""
    content = data.get(CONTENT_KEY)
    if isinstance(content, str):
        try:
            content = json.loads(content)
        except ValueError:
            return {}
    return content if isinstance(content, dict) else {}


def _build_or_raise(builder, entity: str):
    missing = builder.missing_fields()
    content = builder.build()
    if content is None:
        raise MissingRequiredFieldError(missing[0] if missing else "content", entity)
    return content


def _decode_feed_item(data: Dict[str, Any]) -> FeedItem:
    content = _content_map(data)
    builder = (
        FeedItemBuilder(_opt_str(content, "title"), _opt_str(content, "body"))
        .set_image_url(_opt_str(content, "imageUrl"))
        .set_action_url(_opt_str(content, "actionUrl"))
        .set_action_title(_opt_str(content, "actionTitle"))
    )
    return _build_or_raise(builder, "feed item")


def _encode_feed_item(item: FeedItem) -> Dict[str, Any]:
    return {
        CONTENT_KEY: {
            "title": item.title,
            "body": item.body,
            "imageUrl": item.image_url,
            "actionUrl": item.action_url,
            "actionTitle": item.action_title,
        },
        CONTENT_TYPE_KEY: "application/json",
    }


def _decode_alert(data: Dict[str, Any]) -> AlertMessage:
    content = _content_map(data)
    builder = (
        AlertBuilder(_opt_str(content, "defaultButton"), _opt_str(content, "style"))
        .set_title(_opt_str(content, "title"))
        .set_message(_opt_str(content, "message"))
        .set_default_button_url(_opt_str(content, "defaultButtonUrl"))
        .set_cancel_button(_opt_str(content, "cancelButton"))
        .set_cancel_button_url(_opt_str(content, "cancelButtonUrl"))
    )
    return _build_or_raise(builder, "alert")


def _encode_alert(alert: AlertMessage) -> Dict[str, Any]:
    return {
        CONTENT_KEY: {
            "title": alert.title,
            "message": alert.message,
            "defaultButton": alert.default_button,
            "defaultButtonUrl": alert.default_button_url,
            "cancelButton": alert.cancel_button,
            "cancelButtonUrl": alert.cancel_button_url,
            "style": alert.style,
        },
        CONTENT_TYPE_KEY: "application/json",
    }


def _decode_in_app(data: Dict[str, Any]) -> InAppMessage:
    remote_assets = data.get("remoteAssets")
    builder = (
        InAppMessageBuilder(_opt_str(data, CONTENT_KEY))
        .set_content_type(_opt_str(data, CONTENT_TYPE_KEY))
        .set_mobile_parameters(_opt_map(data, "mobileParameters"))
        .set_web_parameters(_opt_map(data, "webParameters"))
        .set_remote_assets(remote_assets if isinstance(remote_assets, list) else None)
    )
    return _build_or_raise(builder, "in-app message")


def _encode_in_app(message: InAppMessage) -> Dict[str, Any]:
    return {
        CONTENT_KEY: message.content,
        CONTENT_TYPE_KEY: message.content_type,
        "mobileParameters": dict(message.mobile_parameters),
        "webParameters": dict(message.web_parameters),
        "remoteAssets": list(message.remote_assets),
    }


def _opt_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _decode_content_card(data: Dict[str, Any]) -> ContentCard:
    builder = (
        ContentCardBuilder(data.get(CONTENT_KEY))
        .set_content_type(_opt_str(data, CONTENT_TYPE_KEY))
        .set_meta(_opt_map(data, "meta"))
        .set_published_date(_opt_int(data, "publishedDate"))
        .set_expiry_date(_opt_int(data, "expiryDate"))
    )
    return _build_or_raise(builder, "content card")


def _encode_content_card(card: ContentCard) -> Dict[str, Any]:
    data = {
        CONTENT_KEY: card.content,
        CONTENT_TYPE_KEY: card.content_type,
        "meta": dict(card.meta),
    }
    if card.published_date is not None:
        data["publishedDate"] = card.published_date
    if card.expiry_date is not None:
        data["expiryDate"] = card.expiry_date
    return data


def _code_based_decoder(schema: SchemaType) -> Callable[[Dict[str, Any]], CodeBasedContent]:
    def _decode(data: Dict[str, Any]) -> CodeBasedContent:
        builder = (
            CodeBasedContentBuilder(schema, data.get(CONTENT_KEY))
            .set_content_type(_opt_str(data, CONTENT_TYPE_KEY) or _opt_str(data, "format"))
        )
        return _build_or_raise(builder, "code-based content")
    _decode.__name__ = f"_decode_{schema.name.lower()}"
    return _decode


def _encode_code_based(content: CodeBasedContent) -> Dict[str, Any]:
    data = {CONTENT_KEY: content.content}
    if content.content_type:
        data[CONTENT_TYPE_KEY] = content.content_type
    return data


def _decode_ruleset(data: Dict[str, Any]) -> RulesetContent:
    content = data.get(CONTENT_KEY)
    if not isinstance(content, (str, dict)) or not content:
        raise MissingRequiredFieldError(CONTENT_KEY, "ruleset item")
    return RulesetContent(content=content)


def _encode_ruleset(ruleset: RulesetContent) -> Dict[str, Any]:
    return {CONTENT_KEY: ruleset.content}


_DECODERS: Dict[SchemaType, Callable[[Dict[str, Any]], ContentVariant]] = {
    SchemaType.FEED: _decode_feed_item,
    SchemaType.NATIVE_ALERT: _decode_alert,
    SchemaType.IN_APP: _decode_in_app,
    SchemaType.CONTENT_CARD: _decode_content_card,
    SchemaType.CODE_BASED: _code_based_decoder(SchemaType.CODE_BASED),
    SchemaType.HTML_CONTENT: _code_based_decoder(SchemaType.HTML_CONTENT),
    SchemaType.JSON_CONTENT: _code_based_decoder(SchemaType.JSON_CONTENT),
    SchemaType.DEFAULT_CONTENT: _code_based_decoder(SchemaType.DEFAULT_CONTENT),
    SchemaType.RULESET: _decode_ruleset,
}


def decode(schema_tag: Optional[str], raw: Any, strict: bool = False) -> ContentVariant:
    """Decode an item ``data`` map according to its schema tag.

    Raises MissingRequiredFieldError when the payload is not a map or a
    required field is absent, and UnknownSchemaError for unknown tags in
    strict mode.
    """
    schema = SchemaType.from_string(schema_tag)
    if schema == SchemaType.UNKNOWN:
        if strict:
            raise UnknownSchemaError(str(schema_tag))
        logger.debug("Unknown schema decoded as unknown content", schema=schema_tag)
        return UnknownContent(
            schema_tag=schema_tag if isinstance(schema_tag, str) else SchemaType.UNKNOWN.value,
            data=dict(raw) if isinstance(raw, dict) else {},
        )

    if not isinstance(raw, dict):
        raise MissingRequiredFieldError("data", schema.value)

    return _DECODERS[schema](raw)


def encode(content: ContentVariant) -> Tuple[str, Dict[str, Any]]:
    """Encode a content variant back into ``(schema_tag, data)``."""
    if isinstance(content, FeedItem):
        return SchemaType.FEED.value, _encode_feed_item(content)
    if isinstance(content, AlertMessage):
        return SchemaType.NATIVE_ALERT.value, _encode_alert(content)
    if isinstance(content, InAppMessage):
        return SchemaType.IN_APP.value, _encode_in_app(content)
    if isinstance(content, ContentCard):
        return SchemaType.CONTENT_CARD.value, _encode_content_card(content)
    if isinstance(content, CodeBasedContent):
        return content.schema.value, _encode_code_based(content)
    if isinstance(content, RulesetContent):
        return SchemaType.RULESET.value, _encode_ruleset(content)
    if isinstance(content, UnknownContent):
        return content.schema_tag, dict(content.data)
    raise TypeError(f"Unsupported content variant: {type(content).__name__}")
