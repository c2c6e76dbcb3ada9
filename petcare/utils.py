"""Shared utilities used across the booking engine."""

import re
from typing import Optional


def normalize_phone(value: str) -> str:
    """Strip everything except digits from a phone number.

    Examples:
        >>> normalize_phone("+55 (11) 99999-0000")
        '5511999990000'
        >>> normalize_phone("5511999990000@s.whatsapp.net")
        '5511999990000'
    """
    return re.sub(r"[^\d]", "", value.split("@", 1)[0])


def normalize_input(message: str) -> str:
    """Lowercase and trim an inbound chat message."""
    return message.lower().strip()


def capitalize_first_letter(value: str) -> str:
    """Uppercase the first character and lowercase the rest.

    Examples:
        >>> capitalize_first_letter("rEX")
        'Rex'
    """
    if not value:
        return ""
    return value[0].upper() + value[1:].lower()


def parse_option(message: str) -> Optional[int]:
    """Parse a numeric menu reply. Returns None for anything that isn't an integer."""
    message = message.strip()
    if not re.fullmatch(r"\d+", message):
        return None
    return int(message)


def time_to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(total: int) -> str:
    """Convert minutes since midnight to an ``HH:MM`` string."""
    return f"{total // 60:02d}:{total % 60:02d}"
