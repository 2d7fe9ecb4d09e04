import pytest

from app.services.classifier import classify, to_response_type


@pytest.mark.parametrize(
    "body, expected",
    [
        ("Sim, confirmo!", "confirmed"),
        ("SIM", "confirmed"),
        ("✅", "confirmed"),
        ("não vou poder", "cancelled"),
        ("NAO", "cancelled"),
        ("❌", "cancelled"),
        ("talvez", "unknown"),
        ("", "unknown"),
    ],
)
def test_classify(body, expected):
    assert classify(body) == expected


def test_confirm_set_wins_when_both_match():
    assert classify("sim mas não") == "confirmed"


def test_classify_is_deterministic():
    assert {classify("Sim, confirmo!") for _ in range(5)} == {"confirmed"}


def test_response_type_mapping():
    assert to_response_type("confirmed") == "sim"
    assert to_response_type("cancelled") == "nao"
    assert to_response_type("unknown") == "other"
