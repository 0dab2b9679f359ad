"""
Format checkers for the ``format`` keyword.

Each checker takes a string and answers whether it is a valid instance of the
format. Unknown formats pass (format is an open vocabulary); custom checkers can
be supplied through ValidationOptions.formats.
"""

from __future__ import annotations

import datetime
import ipaddress
import re
from collections.abc import Callable, Mapping
from urllib.parse import urlsplit

__all__ = [
    'FORMAT_CHECKERS',
    'check_format',
]

type FormatChecker = Callable[[str], bool]

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
UUID_PATTERN = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)
DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$', re.ASCII)
TIME_PATTERN = re.compile(
    r'^(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})(?:\.\d+)?(?P<offset>[zZ]|[+-]\d{2}:\d{2})?$', re.ASCII
)
HOSTNAME_LABEL = re.compile(r'^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$')
JSON_POINTER_PATTERN = re.compile(r'^(?:/(?:[^~/]|~[01])*)*$')


def is_email(value: str) -> bool:
    return EMAIL_PATTERN.match(value) is not None


def is_uuid(value: str) -> bool:
    return UUID_PATTERN.match(value) is not None


def is_date(value: str) -> bool:
    """RFC 3339 full-date (calendar-checked, so 2024-02-30 fails)."""
    if DATE_PATTERN.match(value) is None:
        return False
    try:
        datetime.date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_time(value: str) -> bool:
    """RFC 3339 time; the offset is optional and a leap second (60) is allowed."""
    match = TIME_PATTERN.match(value)
    if match is None:
        return False
    if int(match['hour']) > 23 or int(match['minute']) > 59 or int(match['second']) > 60:
        return False
    offset = match['offset']
    if offset and offset not in ('z', 'Z'):
        hours, minutes = offset[1:].split(':')
        return int(hours) <= 23 and int(minutes) <= 59
    return True


def is_date_time(value: str) -> bool:
    date_part, separator, time_part = value.partition('T') if 'T' in value else value.partition('t')
    return bool(separator) and is_date(date_part) and is_time(time_part)


def is_uri(value: str) -> bool:
    """Absolute URI - a scheme is required."""
    if any(char.isspace() for char in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc or parts.path)


def is_uri_reference(value: str) -> bool:
    if any(char.isspace() for char in value):
        return False
    try:
        urlsplit(value)
    except ValueError:
        return False
    return True


def is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def is_ipv6(value: str) -> bool:
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def is_hostname(value: str) -> bool:
    hostname = value[:-1] if value.endswith('.') else value
    if not hostname or len(hostname) > 253:
        return False
    return all(HOSTNAME_LABEL.match(label) for label in hostname.split('.'))


def is_regex(value: str) -> bool:
    try:
        re.compile(value)
    except re.error:
        return False
    return True


def is_json_pointer(value: str) -> bool:
    return JSON_POINTER_PATTERN.match(value) is not None


FORMAT_CHECKERS: Mapping[str, FormatChecker] = {
    'email': is_email,
    'uri': is_uri,
    'uri-reference': is_uri_reference,
    'uuid': is_uuid,
    'date': is_date,
    'time': is_time,
    'date-time': is_date_time,
    'ipv4': is_ipv4,
    'ipv6': is_ipv6,
    'hostname': is_hostname,
    'regex': is_regex,
    'json-pointer': is_json_pointer,
}


def check_format(name: str, value: str, extra: Mapping[str, FormatChecker] | None = None) -> bool:
    """True when ``value`` conforms to format ``name`` (or the format is unknown)."""
    checker = (extra or {}).get(name) or FORMAT_CHECKERS.get(name)
    return checker is None or checker(value)
