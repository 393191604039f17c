import asyncio
from datetime import timedelta

import pytest
from conftest import NOW, TODAY, FakeEmail, FakeMaps, FakeWhatsApp, make_location, make_schedule, make_user

from app.errors import ProviderTimeout
from app.models import Notification
from app.services.notification_service import (
    NotificationRequest,
    dispatch,
    notify_schedule_assignment,
    run_traffic_alerts,
    send_direct_whatsapp,
)
from app.services.result import Result


def _request(recipients, channel="both", **fields):
    return NotificationRequest(
        recipients=recipients,
        channel=channel,
        subject=fields.pop("subject", "Heads up"),
        content=fields.pop("content", "The office is closed on Friday."),
        relation=fields.pop("relation", "announcement"),
        **fields,
    )


class SlowEmail(FakeEmail):
    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.peak = 0

    async def send(self, to, subject, body):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return await super().send(to, subject, body)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_both_channels_are_attempted(self, db, collaborators, whatsapp, email_sender):
        user = make_user(db)

        summary = await dispatch(db, collaborators, _request([user]), now=NOW)

        assert summary.as_dict() == {"total": 1, "sent": 1, "failed": 0}
        row = db.get(Notification, summary.notification_ids[0])
        assert row.status == "sent"
        assert row.delivery["email"]["ok"] is True
        assert row.delivery["whatsapp"]["ok"] is True
        assert row.sent_at is not None
        assert email_sender.sent == [(user.email, "Heads up", "The office is closed on Friday.")]
        assert len(whatsapp.templates) + len(whatsapp.texts) == 1

    @pytest.mark.asyncio
    async def test_respects_recipient_preferences(self, db, collaborators, whatsapp):
        user = make_user(db, notification_preferences={"email": True, "whatsapp": False})

        await dispatch(db, collaborators, _request([user]), now=NOW)

        assert whatsapp.texts == [] and whatsapp.templates == []

    @pytest.mark.asyncio
    async def test_recipient_without_usable_channel_fails(self, db, collaborators):
        user = make_user(db, phone=None, notification_preferences={"email": False, "whatsapp": True})

        summary = await dispatch(db, collaborators, _request([user]), now=NOW)

        row = db.get(Notification, summary.notification_ids[0])
        assert summary.failed == 1
        assert row.status == "failed"
        assert row.delivery == {"skipped": True}

    @pytest.mark.asyncio
    async def test_one_channel_success_counts_as_sent(self, db, collaborators):
        collaborators.whatsapp = FakeWhatsApp(fail=True)
        user = make_user(db)

        summary = await dispatch(db, collaborators, _request([user]), now=NOW)

        row = db.get(Notification, summary.notification_ids[0])
        assert summary.sent == 1
        assert row.delivery["whatsapp"] == {"ok": False, "error": "WhatsApp API error: 500", "code": "provider_rejected"}

    @pytest.mark.asyncio
    async def test_per_recipient_failures_do_not_fail_the_batch(self, db, collaborators):
        collaborators.whatsapp = FakeWhatsApp(fail=True)
        collaborators.email = FakeEmail(fail=True)
        users = [make_user(db, name=f"User {i}", phone=f"+1555000{i:04d}") for i in range(3)]

        summary = await dispatch(db, collaborators, _request(users), now=NOW)

        assert summary.as_dict() == {"total": 3, "sent": 0, "failed": 3}
        assert {row.status for row in db.query(Notification).all()} == {"failed"}

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, db, collaborators):
        slow = SlowEmail()
        collaborators.email = slow
        users = [make_user(db, name=f"User {i}", phone=None) for i in range(6)]

        summary = await dispatch(db, collaborators, _request(users, channel="email"), now=NOW)

        assert summary.sent == 6
        assert slow.peak <= collaborators.notification_concurrency

    @pytest.mark.asyncio
    async def test_unknown_channel(self, db, collaborators):
        with pytest.raises(ValueError):
            await dispatch(db, collaborators, _request([make_user(db)], channel="sms"), now=NOW)


class TestScheduleNotifications:
    @pytest.mark.asyncio
    async def test_assignment_uses_reminder_template(self, db, collaborators, whatsapp):
        user = make_user(db)
        schedule = make_schedule(db, make_location(db), [user], title="Inventory")

        summary = await notify_schedule_assignment(db, collaborators, schedule, [user], created_by=None, now=NOW)

        assert summary.sent == 1
        to, template_id, language, parameters = whatsapp.templates[0]
        assert template_id == "schedule_reminder"
        assert parameters == ["Alice Martin", "Inventory", TODAY.isoformat(), "09:00 - 17:00", "Head Office, 100 Main St"]
        row = db.query(Notification).one()
        assert (row.relation, row.related_id) == ("schedule", schedule.id)

    @pytest.mark.asyncio
    async def test_change_uses_change_template(self, db, collaborators, whatsapp):
        user = make_user(db)
        schedule = make_schedule(db, make_location(db), [user])

        await notify_schedule_assignment(db, collaborators, schedule, [user], created_by=None, changed=True, now=NOW)

        assert whatsapp.templates[0][1] == "schedule_change"


class TestTrafficAlerts:
    @pytest.mark.asyncio
    async def test_alerts_cover_today_and_tomorrow_once(self, db, collaborators):
        collaborators.maps = FakeMaps(level=2)
        user = make_user(db)
        location = make_location(db)
        today = make_schedule(db, location, [user], day=TODAY)
        tomorrow = make_schedule(db, location, [user], day=TODAY + timedelta(days=1))
        make_schedule(db, location, [user], day=TODAY + timedelta(days=2))
        make_schedule(db, location, [user], day=TODAY, status="cancelled")

        first = await run_traffic_alerts(db, collaborators, now=NOW)
        second = await run_traffic_alerts(db, collaborators, now=NOW)

        assert first.sent == 2
        assert second.total == 0
        related = {row.related_id for row in db.query(Notification).filter(Notification.relation == "traffic")}
        assert related == {today.id, tomorrow.id}

    @pytest.mark.asyncio
    async def test_light_traffic_is_ignored(self, db, collaborators):
        collaborators.maps = FakeMaps(level=1)
        make_schedule(db, make_location(db), [make_user(db)])

        summary = await run_traffic_alerts(db, collaborators, now=NOW)
        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_lookup_failure_skips_schedule(self, db, collaborators):
        collaborators.maps = FakeMaps(error=ProviderTimeout("Maps request timed out"))
        make_schedule(db, make_location(db), [make_user(db)])

        summary = await run_traffic_alerts(db, collaborators, now=NOW)
        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_failed_alert_is_retried_next_run(self, db, collaborators):
        collaborators.maps = FakeMaps(level=3)
        collaborators.whatsapp = FakeWhatsApp(fail=True)
        collaborators.email = FakeEmail(fail=True)
        make_schedule(db, make_location(db), [make_user(db)])

        first = await run_traffic_alerts(db, collaborators, now=NOW)
        collaborators.whatsapp = FakeWhatsApp()
        second = await run_traffic_alerts(db, collaborators, now=NOW)

        assert (first.failed, second.sent) == (1, 1)


class TestDirectWhatsApp:
    @pytest.mark.asyncio
    async def test_requires_phone(self, db, collaborators):
        result = await send_direct_whatsapp(db, collaborators, make_user(db, phone=None), "hi")
        assert result == Result.failure("Recipient has no phone", code="validation")

    @pytest.mark.asyncio
    async def test_sends_through_policy(self, db, collaborators, whatsapp):
        user = make_user(db)
        result = await send_direct_whatsapp(db, collaborators, user, "Please call the office", now=NOW)

        assert result.ok
        assert whatsapp.templates[0][1:] == ("general_announcement_update", "en", ["Alice Martin", "Please call the office"])
