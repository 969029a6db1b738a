"""Tests for emailing lists and SMTP notifications."""

import smtplib

import pytest

from sharecrm.core import customers, notifications
from sharecrm.core.errors import ValidationError


class FakeSMTP:
    """Records what would have been sent."""

    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.logged_in = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, username, password):
        self.logged_in = username

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch, crm_config):
    FakeSMTP.sent = []
    crm_config.email.enabled = True
    monkeypatch.setattr(notifications.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


class TestEmailingLists:
    """Tests for get_lists and set_list."""

    def test_every_list_present(self):
        lists = notifications.get_lists()

        assert set(lists) == set(notifications.LIST_NAMES)
        assert all(emails == [] for emails in lists.values())

    def test_set_normalizes_and_dedupes(self):
        saved = notifications.set_list("payments", ["B@Example.com", "a@example.com", "b@example.com"])

        assert saved == ["a@example.com", "b@example.com"]
        assert notifications.get_lists()["payments"] == ["a@example.com", "b@example.com"]

    def test_set_replaces(self):
        notifications.set_list("payments", ["a@example.com"])
        notifications.set_list("payments", [])

        assert notifications.get_lists()["payments"] == []

    def test_unknown_list(self):
        with pytest.raises(ValidationError, match="Unknown"):
            notifications.set_list("marketing", ["a@example.com"])

    def test_invalid_address(self):
        with pytest.raises(ValidationError, match="not-an-email"):
            notifications.set_list("payments", ["not-an-email"])


class TestNotify:
    """Tests for notify."""

    def test_disabled_sends_nothing(self):
        notifications.set_list("payments", ["a@example.com"])

        assert notifications.notify("payments", "Subject", "<p>Hi</p>") == 0

    def test_empty_list(self, fake_smtp):
        assert notifications.notify("payments", "Subject", "<p>Hi</p>") == 0
        assert fake_smtp.sent == []

    def test_sends_to_list(self, fake_smtp):
        notifications.set_list("payments", ["a@example.com", "b@example.com"])

        assert notifications.notify("payments", "Paid", "<p>Done</p>") == 2

        msg = fake_smtp.sent[0]
        assert msg["Subject"] == "Paid"
        assert msg["To"] == "a@example.com, b@example.com"

    def test_delivery_failure_is_logged_not_raised(self, monkeypatch, fake_smtp):
        def refuse(*args, **kwargs):
            raise smtplib.SMTPConnectError(421, "busy")

        monkeypatch.setattr(notifications.smtplib, "SMTP", refuse)
        notifications.set_list("payments", ["a@example.com"])

        assert notifications.notify("payments", "Paid", "<p>Done</p>") == 0


class TestProfileNotifications:
    """customer_profile_updates hears about new and edited customers."""

    def test_staff_created_customer(self, fake_smtp):
        notifications.set_list("customer_profile_updates", ["office@example.com"])

        customers.create_customer({"first_name": "Jane", "surname": "Doe", "email": "jane@example.com"})

        assert [msg["Subject"] for msg in fake_smtp.sent] == ["New customer: Jane Doe"]

    def test_portal_profile_edit(self, fake_smtp, customer):
        notifications.set_list("customer_profile_updates", ["office@example.com"])

        customers.update_customer(customer.id, {"contact_no": "0422 222 222"}, notify_staff=True)

        assert fake_smtp.sent[-1]["Subject"] == "Profile updated: Jane Doe"
