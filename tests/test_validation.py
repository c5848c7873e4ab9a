from __future__ import annotations

import pytest

from outly.auth.validation import parse_login, parse_registration
from outly.errors import ClientInputError


GOOD = {"email": "a@b.com", "password": "longenough", "username": "alice_1"}


def _with(**changes):
    body = dict(GOOD)
    for k, v in changes.items():
        if v is KeyError:
            body.pop(k, None)
        else:
            body[k] = v
    return body


def test_registration_normalizes_email_and_username():
    data = parse_registration(_with(email="  A@B.COM ", username="  alice_1  "))
    assert data.email == "a@b.com"
    assert data.username == "alice_1"
    assert data.password == "longenough"


def test_password_is_not_trimmed():
    data = parse_registration(_with(password="  spaced  "))
    assert data.password == "  spaced  "


@pytest.mark.parametrize(
    "body, code",
    [
        (_with(email=KeyError), "missing_fields"),
        (_with(password=None), "missing_fields"),
        (_with(username=""), "missing_fields"),
        (_with(email=5), "invalid_types"),
        (_with(username=["alice"]), "invalid_types"),
        (_with(email="no-at-sign"), "invalid_email"),
        (_with(email="   "), "invalid_email"),
        (_with(password="short"), "password_too_short"),
        (_with(password="longenough\x00"), "invalid_password"),
        (_with(username="ab"), "username_too_short"),
        (_with(username="  ab  "), "username_too_short"),
        (_with(username="a" * 21), "username_too_long"),
        (_with(username="alice-1"), "invalid_username"),
        (_with(username="ali ce"), "invalid_username"),
    ],
)
def test_registration_errors(body, code):
    with pytest.raises(ClientInputError) as ei:
        parse_registration(body)
    assert ei.value.code == code
    assert ei.value.status_code == 400


@pytest.mark.parametrize(
    "body, code",
    [
        # Every check is violated; presence is checked first.
        ({"email": 1, "password": "x", "username": ""}, "missing_fields"),
        ({"email": 1, "password": "x", "username": "a"}, "invalid_types"),
        ({"email": "bad", "password": "x", "username": "a!"}, "invalid_email"),
        ({"email": "a@b", "password": "x", "username": "a!"}, "password_too_short"),
        ({"email": "a@b", "password": "longenough", "username": "a!"}, "username_too_short"),
    ],
)
def test_first_failing_check_wins(body, code):
    with pytest.raises(ClientInputError) as ei:
        parse_registration(body)
    assert ei.value.code == code


def test_username_boundaries():
    assert parse_registration(_with(username="abc")).username == "abc"
    assert parse_registration(_with(username="a" * 20)).username == "a" * 20


def test_empty_body_is_missing_fields():
    with pytest.raises(ClientInputError) as ei:
        parse_registration(None)
    assert ei.value.code == "missing_fields"


def test_non_object_body_is_invalid():
    with pytest.raises(ClientInputError) as ei:
        parse_registration(["a@b.com", "longenough", "alice_1"])
    assert ei.value.code == "invalid_body"


def test_login_checks_presence_then_types():
    with pytest.raises(ClientInputError) as ei:
        parse_login({"email": "a@b.com"})
    assert ei.value.code == "missing_fields"

    with pytest.raises(ClientInputError) as ei:
        parse_login({"email": "a@b.com", "password": 12345678})
    assert ei.value.code == "invalid_types"

    data = parse_login({"email": " A@B.com ", "password": "longenough"})
    assert data.email == "a@b.com"
