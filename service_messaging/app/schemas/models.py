"""
Content variants and their builders.

Every schema-tagged payload decodes into exactly one of the frozen
dataclasses below. Concrete variants are only constructed through their
builder, which validates required fields and refuses to be reused once
``build()`` has succeeded.
"""

from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field
from enum import Enum

from shared.errors import BuilderMisuseError


class SchemaType(str, Enum):
    """Schema tags carried by proposition items and rule consequences."""
    UNKNOWN = "unknown"
    HTML_CONTENT = "https://ns.adobe.com/personalization/html-content-item"
    JSON_CONTENT = "https://ns.adobe.com/personalization/json-content-item"
    DEFAULT_CONTENT = "https://ns.adobe.com/personalization/default-content-item"
    CODE_BASED = "https://ns.adobe.com/personalization/message/code-based"
    RULESET = "https://ns.adobe.com/personalization/ruleset-item"
    IN_APP = "https://ns.adobe.com/personalization/message/in-app"
    FEED = "https://ns.adobe.com/personalization/message/feed-item"
    CONTENT_CARD = "https://ns.adobe.com/personalization/message/content-card"
    NATIVE_ALERT = "https://ns.adobe.com/personalization/message/native-alert"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "SchemaType":
        """Resolve a wire tag, falling back to UNKNOWN."""
        if not isinstance(value, str) or not value:
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


ALERT_STYLE_ALERT = "alert"
ALERT_STYLE_ACTION_SHEET = "actionSheet"
ALERT_STYLES = (ALERT_STYLE_ALERT, ALERT_STYLE_ACTION_SHEET)

CODE_BASED_SCHEMAS = (
    SchemaType.CODE_BASED,
    SchemaType.HTML_CONTENT,
    SchemaType.JSON_CONTENT,
    SchemaType.DEFAULT_CONTENT,
)


@dataclass(frozen=True)
class FeedItem:
    """Non-disruptive, interactive offer rendered inside a feed."""
    title: str
    body: str
    image_url: str = ""
    action_url: str = ""
    action_title: str = ""


@dataclass(frozen=True)
class AlertMessage:
    """Native alert shown as a dialog or an action sheet."""
    default_button: str
    style: str
    title: str = ""
    message: str = ""
    default_button_url: str = ""
    cancel_button: str = ""
    cancel_button_url: str = ""


@dataclass(frozen=True)
class InAppMessage:
    """HTML in-app message plus its presentation parameters."""
    content: str
    content_type: str = "text/html"
    mobile_parameters: Dict[str, Any] = field(default_factory=dict)
    web_parameters: Dict[str, Any] = field(default_factory=dict)
    remote_assets: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContentCard:
    """Content card with its raw card content and scheduling window."""
    content: Union[str, Dict[str, Any]]
    content_type: str = "application/json"
    meta: Dict[str, Any] = field(default_factory=dict)
    published_date: Optional[int] = None
    expiry_date: Optional[int] = None


@dataclass(frozen=True)
class CodeBasedContent:
    """Code-based, HTML, JSON or default content handed to the app as is."""
    schema: SchemaType
    content: Any
    content_type: str = ""


@dataclass(frozen=True)
class RulesetContent:
    """Rules document embedded in a ruleset item."""
    content: Union[str, Dict[str, Any]]


@dataclass(frozen=True)
class UnknownContent:
    """Payload whose schema tag is not recognized."""
    schema_tag: str
    data: Dict[str, Any] = field(default_factory=dict)


ContentVariant = Union[
    FeedItem, AlertMessage, InAppMessage, ContentCard,
    CodeBasedContent, RulesetContent, UnknownContent
]


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value


class _ContentBuilder:
    """Shared build-once bookkeeping for content builders."""

    _name = "ContentBuilder"

    def __init__(self):
        self._fields: Dict[str, Any] = {}
        self._built = False

    def _set(self, name: str, value: Any):
        self._throw_if_already_built()
        self._fields[name] = value
        return self

    def _throw_if_already_built(self):
        if self._built:
            raise BuilderMisuseError(self._name)

    def missing_fields(self) -> List[str]:
        """Required fields that are absent or invalid."""
        return []

    def _create(self):
        raise NotImplementedError

    def build(self):
        """Build the content object, or return None if a required field is invalid."""
        if self.missing_fields():
            return None

        self._throw_if_already_built()
        self._built = True

        return self._create()


class FeedItemBuilder(_ContentBuilder):
    """Builder for FeedItem. Title and body are required."""

    _name = "FeedItemBuilder"

    def __init__(self, title: Optional[str], body: Optional[str]):
        super().__init__()
        self._fields.update(
            title=title if isinstance(title, str) else "",
            body=body if isinstance(body, str) else "",
            image_url="",
            action_url="",
            action_title="",
        )

    def set_image_url(self, image_url: Optional[str]) -> "FeedItemBuilder":
        return self._set("image_url", image_url or "")

    def set_action_url(self, action_url: Optional[str]) -> "FeedItemBuilder":
        return self._set("action_url", action_url or "")

    def set_action_title(self, action_title: Optional[str]) -> "FeedItemBuilder":
        return self._set("action_title", action_title or "")

    def missing_fields(self) -> List[str]:
        return [name for name in ("title", "body") if _is_blank(self._fields[name])]

    def _create(self) -> FeedItem:
        return FeedItem(**self._fields)


class AlertBuilder(_ContentBuilder):
    """Builder for AlertMessage.

    The default button text is required and the style must be either
    ``alert`` or ``actionSheet``.
    """

    _name = "AlertBuilder"

    def __init__(self, default_button: Optional[str], style: Optional[str]):
        super().__init__()
        self._fields.update(
            default_button=default_button if isinstance(default_button, str) else "",
            style=style if isinstance(style, str) else "",
            title="",
            message="",
            default_button_url="",
            cancel_button="",
            cancel_button_url="",
        )

    def set_title(self, title: Optional[str]) -> "AlertBuilder":
        return self._set("title", title or "")

    def set_message(self, message: Optional[str]) -> "AlertBuilder":
        return self._set("message", message or "")

    def set_default_button_url(self, url: Optional[str]) -> "AlertBuilder":
        return self._set("default_button_url", url or "")

    def set_cancel_button(self, cancel_button: Optional[str]) -> "AlertBuilder":
        return self._set("cancel_button", cancel_button or "")

    def set_cancel_button_url(self, url: Optional[str]) -> "AlertBuilder":
        return self._set("cancel_button_url", url or "")

    def missing_fields(self) -> List[str]:
        missing = []
        if _is_blank(self._fields["default_button"]):
            missing.append("default_button")
        if self._fields["style"] not in ALERT_STYLES:
            missing.append("style")
        return missing

    def _create(self) -> AlertMessage:
        return AlertMessage(**self._fields)


class InAppMessageBuilder(_ContentBuilder):
    """Builder for InAppMessage. The HTML content is required."""

    _name = "InAppMessageBuilder"

    def __init__(self, content: Optional[str]):
        super().__init__()
        self._fields.update(
            content=content if isinstance(content, str) else "",
            content_type="text/html",
            mobile_parameters={},
            web_parameters={},
            remote_assets=[],
        )

    def set_content_type(self, content_type: Optional[str]) -> "InAppMessageBuilder":
        return self._set("content_type", content_type or "text/html")

    def set_mobile_parameters(self, parameters: Optional[Dict[str, Any]]) -> "InAppMessageBuilder":
        return self._set("mobile_parameters", dict(parameters or {}))

    def set_web_parameters(self, parameters: Optional[Dict[str, Any]]) -> "InAppMessageBuilder":
        return self._set("web_parameters", dict(parameters or {}))

    def set_remote_assets(self, assets: Optional[List[str]]) -> "InAppMessageBuilder":
        return self._set("remote_assets", list(assets or []))

    def missing_fields(self) -> List[str]:
        return ["content"] if _is_blank(self._fields["content"]) else []

    def _create(self) -> InAppMessage:
        return InAppMessage(**self._fields)


class ContentCardBuilder(_ContentBuilder):
    """Builder for ContentCard. Non-empty card content is required."""

    _name = "ContentCardBuilder"

    def __init__(self, content: Union[str, Dict[str, Any], None]):
        super().__init__()
        self._fields.update(
            content=content,
            content_type="application/json",
            meta={},
            published_date=None,
            expiry_date=None,
        )

    def set_content_type(self, content_type: Optional[str]) -> "ContentCardBuilder":
        return self._set("content_type", content_type or "application/json")

    def set_meta(self, meta: Optional[Dict[str, Any]]) -> "ContentCardBuilder":
        return self._set("meta", dict(meta or {}))

    def set_published_date(self, published_date: Optional[int]) -> "ContentCardBuilder":
        return self._set("published_date", published_date)

    def set_expiry_date(self, expiry_date: Optional[int]) -> "ContentCardBuilder":
        return self._set("expiry_date", expiry_date)

    def missing_fields(self) -> List[str]:
        content = self._fields["content"]
        if not isinstance(content, (str, dict)) or not content:
            return ["content"]
        return []

    def _create(self) -> ContentCard:
        return ContentCard(**self._fields)


class CodeBasedContentBuilder(_ContentBuilder):
    """Builder for CodeBasedContent.

    Default content may be empty; the other code-based schemas need a
    non-empty payload.
    """

    _name = "CodeBasedContentBuilder"

    def __init__(self, schema: SchemaType, content: Any):
        super().__init__()
        self._fields.update(schema=schema, content=content, content_type="")

    def set_content_type(self, content_type: Optional[str]) -> "CodeBasedContentBuilder":
        return self._set("content_type", content_type or "")

    def missing_fields(self) -> List[str]:
        if self._fields["schema"] not in CODE_BASED_SCHEMAS:
            return ["schema"]
        content = self._fields["content"]
        if self._fields["schema"] == SchemaType.DEFAULT_CONTENT:
            return []
        if content is None or content == "" or content == {} or content == []:
            return ["content"]
        return []

    def _create(self) -> CodeBasedContent:
        return CodeBasedContent(**self._fields)
