import pytest

from alertcast.core.exceptions import MissingVariable, TemplateNotFound, ValidationError
from alertcast.models.recipient import RecipientRole
from alertcast.schemas.notification import TemplateCreate, TemplateUpdate
from alertcast.services.template_registry import TemplateRegistry, find_placeholders, substitute


def test_substitute_replaces_known_placeholders_only():
    text = "Hello {{name}}, meet {{ other }} at {{place}}"
    assert substitute(text, {"name": "Asha", "other": "Ravi"}) == "Hello Asha, meet Ravi at {{place}}"


def test_find_placeholders_keeps_first_seen_order():
    assert find_placeholders("{{b}} {{a}} {{b}}") == ["b", "a"]


@pytest.mark.asyncio
async def test_get_by_code_missing_raises(db_session):
    registry = TemplateRegistry(db_session)
    with pytest.raises(TemplateNotFound):
        await registry.get_by_code("does_not_exist")


@pytest.mark.asyncio
async def test_render_requires_every_declared_variable(db_session, make_template):
    template = await make_template()
    registry = TemplateRegistry(db_session)

    with pytest.raises(MissingVariable) as exc_info:
        registry.render(template, {})
    assert exc_info.value.missing == ["location"]


@pytest.mark.asyncio
async def test_render_ignores_extra_variables_and_is_idempotent(db_session, make_template):
    template = await make_template()
    registry = TemplateRegistry(db_session)
    variables = {"location": "MG Road", "unused": "x"}

    first = registry.render(template, variables)
    second = registry.render(template, variables)

    assert first == ("SOS Alert", "An SOS alert was raised near MG Road.")
    assert first == second


@pytest.mark.asyncio
async def test_list_active_is_restartable_and_filters_category(db_session, make_template):
    await make_template(code="sos_created")
    await make_template(code="device_offline", category="device", variables=(), body="Offline")
    await make_template(code="old_alert", is_active=False)
    registry = TemplateRegistry(db_session)

    active = registry.list_active()
    first_pass = [t.code async for t in active]
    second_pass = [t.code async for t in active]
    assert sorted(first_pass) == ["device_offline", "sos_created"]
    assert first_pass == second_pass

    await make_template(code="sos_resolved", variables=(), body="Resolved")
    assert "sos_resolved" in [t.code async for t in active]

    emergency = [t.code async for t in registry.list_active("emergency")]
    assert sorted(emergency) == ["sos_created", "sos_resolved"]


@pytest.mark.asyncio
async def test_create_rejects_undeclared_placeholders(db_session):
    registry = TemplateRegistry(db_session)
    data = TemplateCreate(
        code="bad_template",
        name="Bad",
        title="Alert at {{location}}",
        body="Body",
        variables=[],
        target_roles=[RecipientRole.POLICE],
    )
    with pytest.raises(ValidationError):
        await registry.create(data)


@pytest.mark.asyncio
async def test_create_rejects_duplicate_code(db_session, make_template):
    await make_template(code="sos_created")
    registry = TemplateRegistry(db_session)
    data = TemplateCreate(
        code="sos_created",
        name="Duplicate",
        title="SOS",
        body="Near {{location}}",
        variables=["location"],
    )
    with pytest.raises(ValidationError):
        await registry.create(data)


@pytest.mark.asyncio
async def test_update_bumps_version_on_content_change_only(db_session, make_template):
    await make_template()
    registry = TemplateRegistry(db_session)

    renamed = await registry.update("sos_created", TemplateUpdate(name="Renamed"))
    assert renamed.version == 1

    edited = await registry.update(
        "sos_created",
        TemplateUpdate(body="SOS near {{location}} reported by {{reporter}}", variables=["location", "reporter"]),
    )
    assert edited.version == 2
    assert edited.variables == ["location", "reporter"]


@pytest.mark.asyncio
async def test_update_rejects_body_using_undeclared_variable(db_session, make_template):
    await make_template()
    registry = TemplateRegistry(db_session)
    with pytest.raises(ValidationError):
        await registry.update("sos_created", TemplateUpdate(body="Near {{landmark}}"))


@pytest.mark.asyncio
async def test_update_treats_null_fields_as_unchanged(db_session, make_template):
    await make_template()
    registry = TemplateRegistry(db_session)

    changes = TemplateUpdate.model_validate(
        {"variables": None, "title": None, "body": None, "isActive": None, "name": "Renamed"}
    )
    updated = await registry.update("sos_created", changes)

    assert updated.name == "Renamed"
    assert updated.variables == ["location"]
    assert updated.title == "SOS Alert"
    assert updated.is_active is True
    assert updated.version == 1
