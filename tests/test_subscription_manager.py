"""
Subscription lifecycle tests
"""

import json

import pytest
from sqlalchemy.exc import IntegrityError

from statuspulse.database import PageSubscriber, SubscriberRepository, get_session
from statuspulse.subscription import (
    InvalidChannelConfigError,
    InvalidComponentsError,
    PageNotFoundError,
    SubscriptionConflictError,
    SubscriptionExpiredError,
    SubscriptionNotFoundError,
    SubscriptionNotVerifiedError,
    SubscriptionUnsubscribedError,
    mask_email,
)
from statuspulse.utils import utcnow


class TestUpsertEmailSubscription:
    """upsert_email_subscription"""

    def test_creates_pending_subscription(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])

        assert sub.id is not None
        assert sub.email == "jane@acme.io"
        assert sub.token
        assert sub.accepted_at is None
        assert sub.unsubscribed_at is None
        assert sub.component_ids == [page.c1]
        assert sub.expires_at > utcnow()
        assert sub.page_name == "Acme Status"

    def test_email_is_stored_lowercase(self, manager, page):
        sub = manager.upsert_email_subscription("Jane@ACME.io", page.id)

        assert sub.email == "jane@acme.io"

    def test_empty_scope_means_entire_page(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)

        assert sub.component_ids == []

    def test_repeat_upsert_is_idempotent(self, manager, page):
        first = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])
        second = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])

        assert second.id == first.id
        assert second.token == first.token
        assert second.component_ids == [page.c1]

    def test_identity_is_case_insensitive(self, manager, page):
        first = manager.upsert_email_subscription("jane@acme.io", page.id)
        second = manager.upsert_email_subscription("JANE@acme.io", page.id)

        assert second.id == first.id

    def test_pending_upsert_unions_components(self, manager, page):
        manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])
        merged = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c2])

        assert sorted(merged.component_ids) == sorted([page.c1, page.c2])

    def test_pending_upsert_refreshes_expiry(self, manager, page, expire_subscription):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)
        expire_subscription(sub.id)

        merged = manager.upsert_email_subscription("jane@acme.io", page.id)

        assert merged.id == sub.id
        assert merged.expires_at > utcnow()

    def test_accepted_subscription_is_returned_unchanged(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])
        manager.verify(sub.token)

        again = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c2])

        assert again.id == sub.id
        assert again.accepted_at is not None
        assert again.component_ids == [page.c1]

    def test_subscribing_after_unsubscribe_creates_new_row(self, manager, page):
        old = manager.upsert_email_subscription("jane@acme.io", page.id)
        manager.verify(old.token)
        manager.unsubscribe(old.token)

        new = manager.upsert_email_subscription("jane@acme.io", page.id)

        assert new.id != old.id
        assert new.token != old.token
        assert new.accepted_at is None

        with get_session() as session:
            assert session.get(PageSubscriber, old.id).unsubscribed_at is not None

    def test_unknown_page(self, manager, db):
        with pytest.raises(PageNotFoundError):
            manager.upsert_email_subscription("jane@acme.io", 999)

    def test_component_of_another_page(self, manager, page, other_page):
        with pytest.raises(InvalidComponentsError) as exc_info:
            manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1, other_page.c1])

        assert exc_info.value.component_ids == [other_page.c1]

        with get_session() as session:
            assert session.query(PageSubscriber).count() == 0

    def test_invalid_email(self, manager, page):
        with pytest.raises(InvalidChannelConfigError):
            manager.upsert_email_subscription("not-an-email", page.id)


class TestUpsertWebhookSubscription:
    """upsert_webhook_subscription"""

    def test_creates_webhook_subscription(self, manager, page):
        config = {"headers": [{"key": "Authorization", "value": "Bearer abc"}]}
        sub = manager.upsert_webhook_subscription("https://hooks.acme.io/status", page.id, [page.c2], config)

        assert sub.channel_type.value == "webhook"
        assert sub.webhook_url == "https://hooks.acme.io/status"
        assert json.loads(sub.channel_config) == config
        assert sub.component_ids == [page.c2]

    def test_email_and_webhook_are_separate_identities(self, manager, page):
        email_sub = manager.upsert_email_subscription("jane@acme.io", page.id)
        webhook_sub = manager.upsert_webhook_subscription("https://hooks.acme.io/status", page.id)

        assert email_sub.id != webhook_sub.id

    def test_pending_merge_replaces_config(self, manager, page):
        manager.upsert_webhook_subscription("https://hooks.acme.io/status", page.id, channel_config={"secret": "a"})
        merged = manager.upsert_webhook_subscription(
            "https://hooks.acme.io/status", page.id, channel_config={"secret": "b"}
        )

        assert json.loads(merged.channel_config) == {"secret": "b"}

    def test_invalid_url(self, manager, page):
        with pytest.raises(InvalidChannelConfigError):
            manager.upsert_webhook_subscription("not a url", page.id)

    def test_invalid_config(self, manager, page):
        with pytest.raises(InvalidChannelConfigError):
            manager.upsert_webhook_subscription(
                "https://hooks.acme.io/status", page.id, channel_config={"headers": [{"key": "", "value": "x"}]}
            )


class TestConcurrentUpsert:
    """Unique active row per (identity, page) under racing writers"""

    @pytest.fixture
    def stale_lookup(self, monkeypatch):
        """Make get_active miss the existing row for the first `misses` calls"""
        original = SubscriberRepository.get_active

        def install(misses):
            calls = []

            def get_active(session, channel_type, identity, page_id):
                calls.append(identity)
                if len(calls) <= misses:
                    return None
                return original(session, channel_type, identity, page_id)

            monkeypatch.setattr(SubscriberRepository, "get_active", staticmethod(get_active))
            return calls

        return install

    def test_index_rejects_second_active_row(self, manager, page):
        manager.upsert_email_subscription("jane@acme.io", page.id)

        with pytest.raises(IntegrityError):
            with get_session() as session:
                session.add(PageSubscriber(
                    page_id=page.id,
                    channel_type="email",
                    email="JANE@acme.io",
                    token="second-token",
                    expires_at=utcnow(),
                ))

        with get_session() as session:
            assert session.query(PageSubscriber).count() == 1

    def test_collision_is_retried_and_merged(self, manager, page, stale_lookup):
        existing = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])
        calls = stale_lookup(misses=1)

        merged = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c2])

        assert len(calls) == 2
        assert merged.id == existing.id
        assert merged.token == existing.token
        assert sorted(merged.component_ids) == sorted([page.c1, page.c2])

        with get_session() as session:
            assert session.query(PageSubscriber).count() == 1

    def test_second_collision_raises_conflict(self, manager, page, stale_lookup):
        manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])
        calls = stale_lookup(misses=2)

        with pytest.raises(SubscriptionConflictError):
            manager.upsert_email_subscription("jane@acme.io", page.id, [page.c2])

        assert len(calls) == 2
        with get_session() as session:
            assert session.query(PageSubscriber).count() == 1


class TestVerify:
    """verify"""

    def test_accepts_pending(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)

        verified = manager.verify(sub.token)

        assert verified.id == sub.id
        assert verified.accepted_at is not None

    def test_second_verify_keeps_acceptance_time(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)
        first = manager.verify(sub.token)
        second = manager.verify(sub.token)

        assert second.accepted_at == first.accepted_at

    def test_expired_token(self, manager, page, expire_subscription):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)
        expire_subscription(sub.id)

        with pytest.raises(SubscriptionExpiredError):
            manager.verify(sub.token)

        with get_session() as session:
            assert session.get(PageSubscriber, sub.id).accepted_at is None

    def test_unknown_token(self, manager, page):
        assert manager.verify("does-not-exist") is None

    def test_domain_must_match_page(self, manager, page, other_page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)

        assert manager.verify(sub.token, other_page.slug) is None
        assert manager.verify(sub.token, "STATUS.ACME.IO").accepted_at is not None
        assert manager.verify(sub.token, page.slug).accepted_at is not None

    def test_unsubscribed_is_not_accepted(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)
        manager.unsubscribe(sub.token)

        result = manager.verify(sub.token)

        assert result.accepted_at is None
        assert result.unsubscribed_at is not None


class TestUpdateScope:
    """update_scope"""

    @pytest.fixture
    def verified(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])
        manager.verify(sub.token)
        return sub

    def test_replaces_whole_scope(self, manager, page, verified):
        updated = manager.update_scope(verified.token, [page.c2])
        assert updated.component_ids == [page.c2]

        updated = manager.update_scope(verified.token, [page.c1, page.c2])
        assert sorted(updated.component_ids) == sorted([page.c1, page.c2])

    def test_empty_scope_switches_to_entire_page(self, manager, page, verified):
        updated = manager.update_scope(verified.token, [])

        assert updated.component_ids == []

    def test_unknown_token(self, manager, page):
        with pytest.raises(SubscriptionNotFoundError):
            manager.update_scope("does-not-exist", [page.c1])

    def test_wrong_domain(self, manager, page, verified):
        with pytest.raises(SubscriptionNotFoundError):
            manager.update_scope(verified.token, [page.c2], "other")

    def test_pending_subscription(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)

        with pytest.raises(SubscriptionNotVerifiedError):
            manager.update_scope(sub.token, [page.c1])

    def test_unsubscribed_subscription(self, manager, page, verified):
        manager.unsubscribe(verified.token)

        with pytest.raises(SubscriptionUnsubscribedError):
            manager.update_scope(verified.token, [page.c2])

    def test_invalid_components_leave_scope_untouched(self, manager, page, other_page, verified):
        with pytest.raises(InvalidComponentsError):
            manager.update_scope(verified.token, [page.c2, other_page.c1])

        assert manager.get_by_token(verified.token).component_ids == [page.c1]


class TestUnsubscribe:
    """unsubscribe"""

    def test_is_idempotent(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)
        manager.verify(sub.token)

        manager.unsubscribe(sub.token)
        first = manager.get_by_token(sub.token).unsubscribed_at
        manager.unsubscribe(sub.token)

        assert first is not None
        assert manager.get_by_token(sub.token).unsubscribed_at == first

    def test_unknown_token(self, manager, page):
        with pytest.raises(SubscriptionNotFoundError):
            manager.unsubscribe("does-not-exist")

    def test_wrong_domain(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)

        with pytest.raises(SubscriptionNotFoundError):
            manager.unsubscribe(sub.token, "other")


class TestGetByToken:
    """get_by_token"""

    def test_masks_identity_and_hides_token(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])

        view = manager.get_by_token(sub.token)

        assert view.email == "j***@acme.io"
        assert view.token is None
        assert view.component_ids == [page.c1]
        assert view.page_slug == "acme"

    def test_webhook_config_is_hidden(self, manager, page):
        sub = manager.upsert_webhook_subscription(
            "https://hooks.acme.io/status", page.id, channel_config={"secret": "s3cret"}
        )

        view = manager.get_by_token(sub.token)

        assert view.channel_config is None
        assert view.token is None

    def test_unknown_token(self, manager, page):
        assert manager.get_by_token("does-not-exist") is None

    def test_wrong_domain(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)

        assert manager.get_by_token(sub.token, "other") is None


class TestHasPendingUnexpiredSubscription:
    """has_pending_unexpired_subscription"""

    def test_pending(self, manager, page):
        manager.upsert_email_subscription("jane@acme.io", page.id)

        assert manager.has_pending_unexpired_subscription("Jane@acme.io", page.id) is True

    def test_verified(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)
        manager.verify(sub.token)

        assert manager.has_pending_unexpired_subscription("jane@acme.io", page.id) is False

    def test_expired(self, manager, page, expire_subscription):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)
        expire_subscription(sub.id)

        assert manager.has_pending_unexpired_subscription("jane@acme.io", page.id) is False

    def test_unknown(self, manager, page):
        assert manager.has_pending_unexpired_subscription("nobody@acme.io", page.id) is False


class TestDashboard:
    """list_page_subscribers / delete_subscriber"""

    def test_lists_every_state(self, manager, page):
        pending = manager.upsert_email_subscription("pending@acme.io", page.id, [page.c1])
        accepted = manager.upsert_email_subscription("accepted@acme.io", page.id)
        manager.verify(accepted.token)
        gone = manager.upsert_webhook_subscription("https://hooks.acme.io/status", page.id)
        manager.unsubscribe(gone.token)

        entries = manager.list_page_subscribers(page.id, order="asc")

        assert [e.id for e in entries] == [pending.id, accepted.id, gone.id]
        assert entries[0].email == "pending@acme.io"
        assert [(c.id, c.name) for c in entries[0].components] == [(page.c1, "API")]
        assert entries[0].is_entire_page is False
        assert entries[1].is_entire_page is True
        assert entries[2].webhook_url == "https://hooks.acme.io/status"
        assert entries[2].unsubscribed_at is not None

    def test_default_order_is_newest_first(self, manager, page):
        first = manager.upsert_email_subscription("first@acme.io", page.id)
        second = manager.upsert_email_subscription("second@acme.io", page.id)

        assert [e.id for e in manager.list_page_subscribers(page.id)] == [second.id, first.id]

    def test_list_unknown_page(self, manager, db):
        with pytest.raises(PageNotFoundError):
            manager.list_page_subscribers(999)

    def test_delete(self, manager, page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id, [page.c1])

        manager.delete_subscriber(sub.id, page.id)

        assert manager.list_page_subscribers(page.id) == []

    def test_delete_requires_matching_page(self, manager, page, other_page):
        sub = manager.upsert_email_subscription("jane@acme.io", page.id)

        with pytest.raises(SubscriptionNotFoundError):
            manager.delete_subscriber(sub.id, other_page.id)


def test_mask_email():
    assert mask_email("john@example.com") == "j***@example.com"
    assert mask_email("no-at-sign") == "no-at-sign"
