import re

COUNTRY_CODE = "55"
CHAT_SUFFIX = "@c.us"
MIN_PHONE_DIGITS = 10

_NON_DIGITS = re.compile(r"\D")


def digits_only(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


def format_phone_number(phone: str) -> str:
    """Strip formatting and prefix the Brazilian country code when missing."""
    cleaned = digits_only(phone)
    if cleaned.startswith(COUNTRY_CODE):
        return cleaned
    return f"{COUNTRY_CODE}{cleaned}"


def to_chat_id(phone: str) -> str:
    if phone.endswith(CHAT_SUFFIX):
        return phone
    return f"{digits_only(phone)}{CHAT_SUFFIX}"


def phone_from_chat_id(chat_id: str) -> str:
    """``5585999990000@c.us`` -> ``5585999990000``."""
    bare = chat_id.split("@", 1)[0]
    return digits_only(bare)
