"""
Python package file for util functions.
"""
import logging
import re
import secrets
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from urllib.parse import quote


logger = logging.getLogger(__name__)

_INSTANT_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?P<fraction>\.\d+)?"
    r"(?P<zone>Z|[+-]\d{2}:\d{2})?$"
)


def generate_unique_id():
    """
    Returns a fresh identifier usable as a SAML ID (an NCName).

    :rtype: str
    :return: "_" followed by 20 hexadecimal characters
    """
    return "_" + secrets.token_hex(10)


def utcnow():
    return datetime.now(timezone.utc)


def generate_instant(now=None):
    """
    Formats a point in time as an xs:dateTime in UTC with millisecond precision.

    :type now: datetime.datetime
    :rtype: str

    :param now: the time to format (default: the current time)
    :return: e.g. "2016-03-01T12:00:00.000Z"
    """
    now = (now or utcnow()).astimezone(timezone.utc)
    return "{base}.{millis:03d}Z".format(
        base=now.strftime("%Y-%m-%dT%H:%M:%S"), millis=now.microsecond // 1000
    )


def parse_instant(value):
    """
    Parses an xs:dateTime. Values without a zone designator are taken as UTC.

    :type value: str
    :rtype: datetime.datetime

    :param value: the lexical xs:dateTime
    :return: an aware datetime in UTC
    :raise ValueError: if the value is not a valid xs:dateTime
    """
    match = _INSTANT_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Invalid xs:dateTime value '{}'".format(value))

    instant = datetime.strptime(match.group("base"), "%Y-%m-%dT%H:%M:%S")
    fraction = match.group("fraction")
    if fraction:
        instant = instant.replace(microsecond=int(fraction[1:7].ljust(6, "0")))

    zone = match.group("zone")
    if zone and zone != "Z":
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        instant = instant - offset if zone[0] == "+" else instant + offset
    return instant.replace(tzinfo=timezone.utc)


def quote_component(value):
    """
    Percent-encodes a query string component, leaving the same characters
    unescaped as the browsers' encodeURIComponent.

    :type value: str
    :rtype: str
    """
    return quote(value, safe="!'()*~")


def quoteattr(value):
    """
    Escapes a value for use inside a double or single quoted XML/HTML attribute.

    Line endings are normalized to a single line feed.

    :type value: str
    :rtype: str
    """
    return (
        str(value)
        .replace("&", "&amp;")
        .replace("'", "&apos;")
        .replace('"', "&quot;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace("\r\n", "\n")
        .replace("\r", "\n")
    )
