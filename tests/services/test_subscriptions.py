import pytest

from alertcast.core.exceptions import InvalidRecipient, ProviderTransientError
from alertcast.db.repositories.recipient_repo import RecipientRepository
from alertcast.models.recipient import RecipientRole, SubscriptionPlatform
from alertcast.services.subscriptions import SubscriptionBinder, SubscriptionService


@pytest.mark.asyncio
async def test_bind_sets_identity_then_tags(gateway, make_recipient):
    recipient = await make_recipient(RecipientRole.POLICE, "Kothrud Station")
    outcome = await SubscriptionBinder(gateway).bind("player-1", recipient)

    assert outcome.identity_bound and outcome.tags_bound
    assert gateway.bound == [("player-1", recipient.id)]
    assert gateway.tagged == [("player-1", {"role": "police", "user_id": recipient.id})]


@pytest.mark.asyncio
async def test_tags_still_applied_when_identity_bind_fails(gateway, make_recipient):
    recipient = await make_recipient(RecipientRole.HOSPITAL, "City Hospital")
    gateway.bind_error = ProviderTransientError("http_503")

    outcome = await SubscriptionBinder(gateway).bind("player-1", recipient)

    assert outcome.identity_bound is False
    assert outcome.tags_bound is True
    assert outcome.bound is True
    assert gateway.tagged[0][1]["role"] == "hospital"


@pytest.mark.asyncio
async def test_register_creates_subscription(db_session, gateway, make_recipient):
    recipient = await make_recipient(RecipientRole.USER, "Asha")
    subscription, outcome = await SubscriptionService(db_session, gateway).register(
        recipient.id, "player-1", SubscriptionPlatform.ANDROID
    )

    assert subscription.recipient_id == recipient.id
    assert subscription.platform == SubscriptionPlatform.ANDROID
    assert subscription.is_active is True
    assert subscription.identity_bound is True
    assert subscription.tags_bound is True


@pytest.mark.asyncio
async def test_register_moves_handle_to_new_owner(db_session, gateway, make_recipient):
    previous = await make_recipient(RecipientRole.USER, "Old owner", handles=("shared-device",))
    current = await make_recipient(RecipientRole.USER, "New owner")

    subscription, _ = await SubscriptionService(db_session, gateway).register(current.id, "shared-device")

    assert subscription.recipient_id == current.id
    repo = RecipientRepository(db_session)
    assert (await repo.get_subscription_by_handle("shared-device")).recipient_id == current.id
    assert previous.id != current.id


@pytest.mark.asyncio
async def test_register_unknown_recipient(db_session, gateway):
    with pytest.raises(InvalidRecipient):
        await SubscriptionService(db_session, gateway).register("missing", "player-1")
