"""Per-role audience filters.

Each role exposes a list of typed filter fields keyed by field name. The
resolver turns an operator's ``{field: value}`` mapping into predicates by
looking fields up here, so new roles or fields only need a new entry in
``ROLE_FILTERS``.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from alertcast.core.exceptions import ValidationError
from alertcast.core.logging import get_logger
from alertcast.models.recipient import Recipient, RecipientRole

logger = get_logger(__name__)


class FilterType(str, enum.Enum):
    BOOLEAN = "boolean"
    SELECT = "select"
    TEXT = "text"


class TextMatch(str, enum.Enum):
    CONTAINS = "contains"
    EXACT = "exact"
    PREFIX = "prefix"


def _push_enabled(recipient: Recipient) -> bool:
    return bool(recipient.active_handles)


@dataclass(frozen=True)
class FilterField:
    field: str
    label: str
    type: FilterType
    options: Optional[List[str]] = None
    match: TextMatch = TextMatch.CONTAINS
    accessor: Optional[Callable[[Recipient], Any]] = None

    def value_of(self, recipient: Recipient) -> Any:
        if self.accessor is not None:
            return self.accessor(recipient)
        return (recipient.attributes or {}).get(self.field)

    def describe(self) -> Dict[str, Any]:
        option: Dict[str, Any] = {"field": self.field, "label": self.label, "type": self.type.value}
        if self.options is not None:
            option["options"] = list(self.options)
        return option


@dataclass(frozen=True)
class FilterPredicate:
    """A single bound filter: one field, one expected value."""

    definition: FilterField
    expected: Any = field(default=None)

    def matches(self, recipient: Recipient) -> bool:
        actual = self.definition.value_of(recipient)
        kind = self.definition.type
        if kind == FilterType.BOOLEAN:
            return bool(actual) == self.expected
        if kind == FilterType.SELECT:
            return actual == self.expected
        if actual is None:
            return False
        actual_text = str(actual).strip().lower()
        expected_text = self.expected.lower()
        if self.definition.match == TextMatch.EXACT:
            return actual_text == expected_text
        if self.definition.match == TextMatch.PREFIX:
            return actual_text.startswith(expected_text)
        return expected_text in actual_text


PUSH_ENABLED = FilterField("pushEnabled", "Push Enabled", FilterType.BOOLEAN, accessor=_push_enabled)

BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]
HOSPITAL_TYPES = ["government", "private", "clinic", "trauma_center"]

ROLE_FILTERS: Dict[RecipientRole, List[FilterField]] = {
    RecipientRole.USER: [
        FilterField("city", "City", FilterType.TEXT),
        FilterField("bloodGroup", "Blood Group", FilterType.SELECT, options=BLOOD_GROUPS),
        FilterField("hasDevices", "Has Devices", FilterType.BOOLEAN),
        PUSH_ENABLED,
    ],
    RecipientRole.ADMIN: [
        FilterField("city", "City", FilterType.TEXT),
        PUSH_ENABLED,
    ],
    RecipientRole.SUPERADMIN: [
        PUSH_ENABLED,
    ],
    RecipientRole.POLICE: [
        FilterField("station", "Police Station", FilterType.TEXT),
        FilterField("district", "District", FilterType.TEXT, match=TextMatch.EXACT),
        FilterField("isVerified", "Verified", FilterType.BOOLEAN),
        PUSH_ENABLED,
    ],
    RecipientRole.HOSPITAL: [
        FilterField("hospitalType", "Hospital Type", FilterType.SELECT, options=HOSPITAL_TYPES),
        FilterField("city", "City", FilterType.TEXT),
        FilterField("pincode", "Pincode", FilterType.TEXT, match=TextMatch.PREFIX),
        FilterField("hasEmergency", "Emergency Ward", FilterType.BOOLEAN),
        FilterField("isVerified", "Verified", FilterType.BOOLEAN),
        PUSH_ENABLED,
    ],
}


def get_filter_options(role: RecipientRole) -> List[Dict[str, Any]]:
    return [f.describe() for f in ROLE_FILTERS.get(role, [])]


def _coerce_boolean(definition: FilterField, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValidationError(f"Filter '{definition.field}' expects true or false")


def build_predicates(role: RecipientRole, filters: Optional[Mapping[str, Any]]) -> List[FilterPredicate]:
    """Bind ``filters`` against the fields ``role`` supports.

    Empty values mean "any value" and produce no predicate. Keys the role
    does not define are ignored for that role.
    """
    if not filters:
        return []
    definitions = {f.field: f for f in ROLE_FILTERS.get(role, [])}
    predicates = []
    for key, value in filters.items():
        if value is None or value == "":
            continue
        definition = definitions.get(key)
        if definition is None:
            logger.debug("Ignoring filter not applicable to role", extra={"role": role.value, "field": key})
            continue
        if definition.type == FilterType.BOOLEAN:
            expected = _coerce_boolean(definition, value)
        elif definition.type == FilterType.SELECT:
            if value not in (definition.options or []):
                raise ValidationError(
                    f"Filter '{key}' must be one of: {', '.join(definition.options or [])}"
                )
            expected = value
        else:
            expected = str(value).strip()
            if not expected:
                continue
        predicates.append(FilterPredicate(definition, expected))
    return predicates
