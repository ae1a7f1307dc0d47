"""Tests for sensitive form field redaction."""

from __future__ import annotations

import pytest

from signalbox.sanitizer import REDACTED, is_sensitive_key, sanitize_payload


class TestIsSensitiveKey:
    @pytest.mark.parametrize(
        "key",
        [
            "password",
            "Password",
            "confirm_password",
            "creditCard",
            "credit-card",
            "card_number",
            "cvv",
            "ssn",
            "api_token",
            "client_secret",
        ],
    )
    def test_sensitive(self, key: str) -> None:
        assert is_sensitive_key(key)

    @pytest.mark.parametrize("key", ["email", "name", "company", "spinner", "message"])
    def test_not_sensitive(self, key: str) -> None:
        assert not is_sensitive_key(key)


class TestSanitizePayload:
    def test_password_is_redacted(self) -> None:
        result = sanitize_payload({"email": "a@b.co", "password": "hunter2"})
        assert result == {"email": "a@b.co", "password": REDACTED}

    def test_input_is_not_mutated(self) -> None:
        payload = {"password": "hunter2"}
        sanitize_payload(payload)
        assert payload == {"password": "hunter2"}

    def test_nested_values_are_walked(self) -> None:
        result = sanitize_payload(
            {
                "billing": {"creditCard": "4111111111111111", "city": "Leeds"},
                "contacts": [{"name": "Ann", "pin": "1234"}, "plain"],
            }
        )
        assert result["billing"] == {"creditCard": REDACTED, "city": "Leeds"}
        assert result["contacts"] == [{"name": "Ann", "pin": REDACTED}, "plain"]

    def test_non_string_keys(self) -> None:
        assert sanitize_payload({1: "x", "password": "p"}) == {1: "x", "password": REDACTED}
        assert not is_sensitive_key(1)

    def test_empty_values_are_left_alone(self) -> None:
        assert sanitize_payload({"password": "", "token": None}) == {
            "password": "",
            "token": None,
        }

    def test_idempotent(self) -> None:
        once = sanitize_payload({"password": "hunter2", "nested": {"cvv": "123"}})
        assert sanitize_payload(once) == once
