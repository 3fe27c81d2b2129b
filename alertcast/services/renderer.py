"""Binding templates or custom payloads into deliverable messages."""

from dataclasses import dataclass
from typing import Mapping, Optional

from alertcast.core.exceptions import TemplateInactive, ValidationError
from alertcast.models.template import NotificationTemplate
from alertcast.services.template_registry import TemplateRegistry

MAX_TITLE_LENGTH = 100
MAX_BODY_LENGTH = 500


@dataclass(frozen=True)
class RenderedMessage:
    title: str
    body: str
    url: Optional[str] = None


def _validate(title: str, body: str, url: Optional[str]) -> RenderedMessage:
    title = (title or "").strip()
    body = (body or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if not body:
        raise ValidationError("Body is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be {MAX_TITLE_LENGTH} characters or less")
    if len(body) > MAX_BODY_LENGTH:
        raise ValidationError(f"Body must be {MAX_BODY_LENGTH} characters or less")

    url = (url or "").strip() or None
    if url and not (url.startswith("/") or url.startswith(("http://", "https://"))):
        raise ValidationError("URL must be a relative path or an http(s) URL")
    return RenderedMessage(title=title, body=body, url=url)


class MessageRenderer:
    def __init__(self, registry: TemplateRegistry):
        self.registry = registry

    def from_template(
        self,
        template: NotificationTemplate,
        variables: Optional[Mapping[str, object]] = None,
        url: Optional[str] = None,
    ) -> RenderedMessage:
        if not template.is_active:
            raise TemplateInactive(template.code)
        title, body = self.registry.render(template, variables)
        return _validate(title, body, url)

    def from_custom(self, title: str, body: str, url: Optional[str] = None) -> RenderedMessage:
        return _validate(title, body, url)
