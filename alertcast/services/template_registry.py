"""Template registry and placeholder rendering."""

import re
from typing import AsyncIterator, Iterable, Mapping, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.core.exceptions import MissingVariable, TemplateNotFound, ValidationError
from alertcast.core.logging import get_logger
from alertcast.db.repositories.template_repo import TemplateRepository
from alertcast.models.template import NotificationTemplate
from alertcast.schemas.notification import TemplateCreate, TemplateUpdate

logger = get_logger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

CONTENT_FIELDS = ("title", "body", "variables")


def find_placeholders(text: str) -> list[str]:
    seen: list[str] = []
    for name in PLACEHOLDER_RE.findall(text):
        if name not in seen:
            seen.append(name)
    return seen


def substitute(text: str, variables: Mapping[str, object]) -> str:
    """Replace ``{{name}}`` with ``variables[name]``; unknown names are left as-is."""

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in variables:
            return str(variables[name])
        return match.group(0)

    return PLACEHOLDER_RE.sub(_replace, text)


class ActiveTemplates:
    """Active templates, queried afresh each time it is iterated."""

    def __init__(self, repo: TemplateRepository, category: Optional[str] = None):
        self._repo = repo
        self._category = category

    async def __aiter__(self) -> AsyncIterator[NotificationTemplate]:
        query = self._repo.build_list_query(self._category, active_only=True)
        result = await self._repo.session.execute(query)
        for template in result.scalars():
            yield template


class TemplateRegistry:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = TemplateRepository(session)

    async def get_by_code(self, code: str) -> NotificationTemplate:
        template = await self.repo.get_by_code(code)
        if template is None:
            raise TemplateNotFound(code)
        return template

    def list_active(self, category: Optional[str] = None) -> ActiveTemplates:
        return ActiveTemplates(self.repo, category)

    async def list_templates(
        self, category: Optional[str] = None, active_only: bool = False
    ) -> Sequence[NotificationTemplate]:
        return await self.repo.list_templates(category, active_only)

    def render(
        self, template: NotificationTemplate, variables: Optional[Mapping[str, object]]
    ) -> tuple[str, str]:
        """Return the (title, body) of ``template`` bound to ``variables``."""
        variables = variables or {}
        missing = [name for name in template.variables if name not in variables]
        if missing:
            raise MissingVariable(template.code, missing)
        return substitute(template.title, variables), substitute(template.body, variables)

    async def create(self, data: TemplateCreate) -> NotificationTemplate:
        _check_declared(data.title, data.body, data.variables)
        template = NotificationTemplate(
            code=data.code,
            name=data.name,
            category=data.category,
            severity=data.severity,
            title=data.title,
            body=data.body,
            variables=list(data.variables),
            target_roles=[role.value for role in data.target_roles],
            is_active=data.is_active,
            version=1,
        )
        self.session.add(template)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ValidationError(f"Template '{data.code}' already exists") from exc
        await self.session.refresh(template)
        logger.info("Template created", extra={"template_code": template.code})
        return template

    async def update(self, code: str, changes: TemplateUpdate) -> NotificationTemplate:
        template = await self.get_by_code(code)
        # null means "leave unchanged"; every template column is required
        updates = changes.model_dump(exclude_unset=True, exclude_none=True)
        if "target_roles" in updates:
            updates["target_roles"] = [role.value for role in changes.target_roles or []]

        _check_declared(
            updates.get("title", template.title),
            updates.get("body", template.body),
            updates.get("variables", template.variables),
        )

        content_changed = any(
            key in updates and updates[key] != getattr(template, key) for key in CONTENT_FIELDS
        )
        for key, value in updates.items():
            setattr(template, key, value)
        if content_changed:
            template.version = (template.version or 1) + 1

        await self.session.commit()
        await self.session.refresh(template)
        logger.info(
            "Template updated",
            extra={"template_code": code, "version": template.version},
        )
        return template


def _check_declared(title: str, body: str, variables: Iterable[str]) -> None:
    declared = set(variables)
    used = find_placeholders(title) + find_placeholders(body)
    undeclared = sorted({name for name in used if name not in declared})
    if undeclared:
        raise ValidationError(f"Undeclared template variables: {', '.join(undeclared)}")
