"""
Tests for log redaction.
"""

from getaways.core.logging import redact_sensitive


def test_credential_fields_masked():
    event = redact_sensitive(None, "info", {
        "event": "login_failed",
        "password": "hunter22",
        "stripe_signature": "t=1,v1=abc",
        "token_id": 7,
    })
    assert event["password"] == "***"
    assert event["stripe_signature"] == "***"
    assert event["token_id"] == 7


def test_payment_link_token_masked_in_text():
    event = redact_sensitive(None, "info", {
        "event": "email_not_sent_no_provider",
        "body": "Pay here: http://localhost:9002/payment/AbC-123_xyz\nThanks",
    })
    assert event["body"] == "Pay here: http://localhost:9002/payment/***\nThanks"


def test_empty_values_left_alone():
    event = redact_sensitive(None, "info", {"event": "x", "token": None})
    assert event["token"] is None
