import pytest

from alertcast.models.delivery_log import (
    DeliveryKind,
    DeliveryLog,
    DeliveryStatus,
    ImmutableRecordError,
    derive_status,
)


@pytest.mark.parametrize(
    "target, success, fail, expected",
    [
        (0, 0, 0, DeliveryStatus.PENDING),
        (3, 3, 0, DeliveryStatus.SENT),
        (3, 0, 3, DeliveryStatus.FAILED),
        (5, 3, 2, DeliveryStatus.PARTIAL),
        (1, 1, 0, DeliveryStatus.SENT),
    ],
)
def test_derive_status(target, success, fail, expected):
    assert derive_status(target, success, fail) == expected


def _log(**overrides):
    values = dict(
        kind=DeliveryKind.CUSTOM,
        title="Hello",
        body="World",
        target_role="police",
        target_count=1,
        success_count=1,
        fail_count=0,
        errors=[],
        status=DeliveryStatus.SENT,
        sent_by="operator-1",
    )
    values.update(overrides)
    return DeliveryLog(**values)


@pytest.mark.asyncio
async def test_log_cannot_be_updated(db_session):
    log = _log()
    db_session.add(log)
    await db_session.commit()

    log.success_count = 0
    with pytest.raises(ImmutableRecordError):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_log_cannot_be_deleted(db_session):
    log = _log()
    db_session.add(log)
    await db_session.commit()

    await db_session.delete(log)
    with pytest.raises(ImmutableRecordError):
        await db_session.commit()
    await db_session.rollback()
