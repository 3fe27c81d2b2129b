from uuid import uuid4

import pytest

from alertcast.core.exceptions import InvalidStateTransition, ProviderPermanentError, StoreWriteError
from alertcast.models.delivery_log import DeliveryKind, DeliveryStatus
from alertcast.models.recipient import RecipientRole, TargetRole
from alertcast.services.audience import TargetSpecification
from alertcast.services.notification_center import (
    NotificationCenter,
    Operator,
    SendRequest,
    SendState,
)
from alertcast.services.orchestrator import DeliveryOrchestrator, RetryPolicy


@pytest.fixture
def operator(operator_id):
    return Operator(id=operator_id, role="superadmin", name="Dev SuperAdmin")


@pytest.fixture
def center(db_session, gateway):
    orchestrator = DeliveryOrchestrator(
        gateway, concurrency=5, retry_policy=RetryPolicy(max_retries=0, backoff_base=0.0, timeout=1.0)
    )
    return NotificationCenter(db_session, gateway, orchestrator)


async def _police(make_recipient, count=3):
    return [
        await make_recipient(RecipientRole.POLICE, f"Station {i}", handles=(f"police-{i}",), station="Kothrud")
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_missing_variable_rejected_before_audience_resolution(center, make_template, monkeypatch, operator):
    await make_template()

    async def fail_resolve(*args, **kwargs):
        raise AssertionError("audience should not be resolved")

    monkeypatch.setattr(center.resolver, "resolve", fail_resolve)
    result = await center.send_template(
        operator, "sos_created", TargetSpecification(TargetRole.POLICE), variables={}
    )

    assert result.success is False
    assert result.code == "MISSING_VARIABLE"
    assert "location" in result.message
    assert result.log_id is None


@pytest.mark.asyncio
async def test_oversized_custom_body_rejected_before_resolution(center, monkeypatch, operator):
    async def fail_resolve(*args, **kwargs):
        raise AssertionError("audience should not be resolved")

    monkeypatch.setattr(center.resolver, "resolve", fail_resolve)
    result = await center.send_custom(
        operator, "Maintenance", "x" * 501, None, TargetSpecification(TargetRole.ALL)
    )

    assert result.success is False
    assert result.code == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_unknown_template(center, operator):
    result = await center.send_template(
        operator, "nope", TargetSpecification(TargetRole.POLICE), variables={}
    )
    assert result.success is False
    assert result.code == "TEMPLATE_NOT_FOUND"


@pytest.mark.asyncio
async def test_empty_audience_writes_no_log(center, make_template, gateway, operator):
    await make_template()
    result = await center.send_template(
        operator, "sos_created", TargetSpecification(TargetRole.POLICE), variables={"location": "Kothrud"}
    )

    assert result.success is False
    assert result.code == "EMPTY_AUDIENCE"
    logs, total = await center.list_logs(page=1, limit=10)
    assert total == 0
    assert not gateway.delivered


@pytest.mark.asyncio
async def test_preview_then_send_template(center, make_template, make_recipient, gateway, operator):
    await make_template()
    await _police(make_recipient)
    spec = TargetSpecification(TargetRole.POLICE, {"station": "Kothrud"})

    preview = await center.preview_audience(spec, "sos_created")
    assert preview.count == 3

    result = await center.send_template(
        operator, "sos_created", spec, variables={"location": "Kothrud"}, expected_count=preview.count
    )

    assert result.success is True
    assert result.status == DeliveryStatus.SENT
    assert result.message == "Notification sent to 3 recipient(s)"
    assert len(gateway.delivered) == 3
    assert gateway.delivered[0][1].body == "An SOS alert was raised near Kothrud."

    log = await center.get_log(result.log_id)
    assert log.kind == DeliveryKind.TEMPLATE
    assert log.template_code == "sos_created"
    assert log.target_role == "police"
    assert log.target_filters == {"station": "Kothrud"}
    assert (log.target_count, log.success_count, log.fail_count) == (3, 3, 0)
    assert log.sent_by == operator.id
    assert log.completed_at is not None


@pytest.mark.asyncio
async def test_audience_change_since_preview_is_reported(center, make_recipient, operator):
    await _police(make_recipient, count=2)
    result = await center.send_custom(
        operator, "Drill", "Evacuation drill at 5pm", None,
        TargetSpecification(TargetRole.POLICE), expected_count=5,
    )

    assert result.success is True
    assert "expected 5" in result.message


@pytest.mark.asyncio
async def test_partial_delivery(center, make_recipient, gateway, operator):
    await _police(make_recipient)
    gateway.outcomes["police-1"] = [ProviderPermanentError("invalid_subscription")]

    result = await center.send_custom(
        operator, "Road closed", "Highway 4 closed", "/alerts", TargetSpecification(TargetRole.POLICE)
    )

    assert result.success is True
    assert result.status == DeliveryStatus.PARTIAL
    assert result.message.startswith("Partial delivery: sent to 2 of 3")

    log = await center.get_log(result.log_id)
    assert log.kind == DeliveryKind.CUSTOM
    assert log.url == "/alerts"
    assert len(log.errors) == 1
    assert log.errors[0]["reason"] == "invalid_subscription"


@pytest.mark.asyncio
async def test_total_failure_is_logged_and_unsuccessful(center, make_recipient, operator):
    await make_recipient(RecipientRole.ADMIN, "No devices")
    result = await center.send_custom(
        operator, "Hello", "World", None, TargetSpecification(TargetRole.ADMIN)
    )

    assert result.success is False
    assert result.status == DeliveryStatus.FAILED
    log = await center.get_log(result.log_id)
    assert [e["reason"] for e in log.errors] == ["no_subscription"]


@pytest.mark.asyncio
async def test_send_test_reaches_only_the_operator(center, make_recipient, gateway, operator):
    await make_recipient(RecipientRole.SUPERADMIN, "Me", handles=("my-phone",), id=operator.id)
    await _police(make_recipient)

    result = await center.send_test(operator)

    assert result.success is True
    assert [h for h, _ in gateway.delivered] == ["my-phone"]
    log = await center.get_log(result.log_id)
    assert log.kind == DeliveryKind.TEST
    assert log.target_role is None
    assert log.target_count == 1


@pytest.mark.asyncio
async def test_send_test_without_subscription(center, operator):
    result = await center.send_test(operator)

    assert result.success is False
    assert result.message == "No push subscription registered for your account"
    assert result.log_id is not None


@pytest.mark.asyncio
async def test_store_write_failure_propagates(center, make_recipient, monkeypatch, operator):
    await _police(make_recipient, count=1)

    async def broken_append(log):
        raise StoreWriteError("disk full")

    monkeypatch.setattr(center.logs, "append", broken_append)
    with pytest.raises(StoreWriteError):
        await center.send_custom(operator, "Hi", "There", None, TargetSpecification(TargetRole.POLICE))


@pytest.mark.asyncio
async def test_logs_are_listed_newest_first(center, make_recipient, operator):
    await _police(make_recipient, count=1)
    first = await center.send_custom(operator, "First", "one", None, TargetSpecification(TargetRole.POLICE))
    second = await center.send_custom(operator, "Second", "two", None, TargetSpecification(TargetRole.POLICE))

    logs, total = await center.list_logs(page=1, limit=10)
    assert total == 2
    assert [log.id for log in logs] == [second.log_id, first.log_id]


def test_cancel_unknown_send():
    assert NotificationCenter.cancel("does-not-exist") is False


def test_send_request_rejects_skipped_states():
    request = SendRequest(DeliveryKind.CUSTOM)
    with pytest.raises(InvalidStateTransition):
        request.advance(SendState.SENDING)

    request.advance(SendState.PREVIEWED)
    request.advance(SendState.SENDING)
    request.advance(SendState.PARTIAL)
    with pytest.raises(InvalidStateTransition):
        request.advance(SendState.SENT)


@pytest.mark.asyncio
async def test_cancel_in_flight_send(db_session, gateway, make_recipient, operator):
    send_id = str(uuid4())
    await _police(make_recipient, count=4)
    gateway.on_deliver = lambda handle: NotificationCenter.cancel(send_id)
    center = NotificationCenter(
        db_session,
        gateway,
        DeliveryOrchestrator(gateway, concurrency=1, retry_policy=RetryPolicy(max_retries=0)),
    )

    result = await center.send_custom(
        operator, "Stop", "Cancelled midway", None, TargetSpecification(TargetRole.POLICE), send_id=send_id
    )

    assert result.log_id == send_id
    assert result.status == DeliveryStatus.PARTIAL
    log = await center.get_log(result.log_id)
    assert log.success_count == 1
    assert {e["reason"] for e in log.errors} == {"cancelled"}
    assert NotificationCenter.cancel(send_id) is False


@pytest.mark.asyncio
async def test_caller_supplied_send_id_becomes_log_id(center, make_recipient, operator):
    await _police(make_recipient, count=1)
    send_id = str(uuid4())
    spec = TargetSpecification(TargetRole.POLICE)

    first = await center.send_custom(operator, "Hi", "There", None, spec, send_id=send_id)
    assert first.log_id == send_id

    again = await center.send_custom(operator, "Hi", "Again", None, spec, send_id=send_id)
    assert again.success is False
    assert again.code == "VALIDATION_ERROR"

    malformed = await center.send_custom(operator, "Hi", "There", None, spec, send_id="not-a-uuid")
    assert malformed.code == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_malformed_selected_id_is_an_invalid_recipient(center, make_recipient, monkeypatch, operator):
    await _police(make_recipient, count=1)

    async def fail_lookup(ids):
        raise AssertionError("malformed ids must not reach the database")

    monkeypatch.setattr(center.resolver.directory, "get_many", fail_lookup)
    result = await center.send_custom(
        operator, "Hi", "There", None,
        TargetSpecification(TargetRole.POLICE, selected_recipient_ids=["abc"]),
    )

    assert result.success is False
    assert result.code == "INVALID_RECIPIENT"
    assert result.log_id is None


@pytest.mark.asyncio
async def test_send_test_for_operator_without_uuid_id(center, monkeypatch):
    async def fail_lookup(id):
        raise AssertionError("non-UUID operator ids must not reach the database")

    monkeypatch.setattr(center.directory, "get_with_subscriptions", fail_lookup)
    result = await center.send_test(Operator(id="admin-1", role="admin", name="Ops"))

    assert result.success is False
    assert result.message == "No push subscription registered for your account"
    log = await center.get_log(result.log_id)
    assert log.sent_by == "admin-1"
    assert log.errors == [{"recipientId": "admin-1", "reason": "no_subscription"}]


@pytest.mark.asyncio
async def test_get_log_with_malformed_id(center):
    assert await center.get_log("not-a-uuid") is None
