"""
Input checks for channel registration.

Each check is pure and raises the matching ChannelError subclass on failure.
The registry runs them in a fixed order and stops at the first failure.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError
from solders.pubkey import Pubkey

from action_channels.crypto import parse_pubkey, to_lamports
from action_channels.errors import (
    InvalidAddress,
    InvalidContactLink,
    InvalidDescription,
    InvalidFee,
    InvalidName,
    InvalidUrl,
)

CHANNEL_NAME_PATTERN = re.compile(r"[A-Za-z0-9\-_\s]{3,50}")
MIN_DESCRIPTION_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 1000
MAX_FEE = Decimal("1000")

_HTTP_URL = TypeAdapter(AnyHttpUrl)


def validate_channel_name(name: Any) -> str:
    if not isinstance(name, str) or not CHANNEL_NAME_PATTERN.fullmatch(name):
        raise InvalidName()
    if not name.strip():
        raise InvalidName()
    return name


def validate_description(description: Any) -> str:
    if not isinstance(description, str):
        raise InvalidDescription()
    length = len(description.strip())
    if length < MIN_DESCRIPTION_LENGTH or length > MAX_DESCRIPTION_LENGTH:
        raise InvalidDescription()
    return description


def validate_fee(fee: Any) -> Decimal:
    """
    Returns the fee as an exact Decimal.

    Floats go through their shortest repr so 0.1 stays 0.1. Numeric strings
    are accepted because form clients submit text.
    """
    if fee is None or isinstance(fee, bool):
        raise InvalidFee()
    try:
        if isinstance(fee, float):
            value = Decimal(repr(fee))
        elif isinstance(fee, (int, Decimal)):
            value = Decimal(fee)
        elif isinstance(fee, str):
            value = Decimal(fee.strip())
        else:
            raise InvalidFee()
    except InvalidOperation:
        raise InvalidFee()

    if not value.is_finite() or value <= 0 or value > MAX_FEE:
        raise InvalidFee()
    try:
        to_lamports(value)
    except ValueError:
        raise InvalidFee("Fee cannot be smaller than one lamport (0.000000001 SOL)")
    return value


def validate_address(address: Any) -> Pubkey:
    try:
        return parse_pubkey(address)
    except ValueError:
        raise InvalidAddress()


def _parse_url(url: Any):
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        parsed = _HTTP_URL.validate_python(url.strip())
    except ValidationError:
        return None
    return parsed if parsed.host else None


def validate_url(url: Any, field: str = "url") -> str:
    if _parse_url(url) is None:
        raise InvalidUrl(f"A valid http(s) URL is required for {field}", details={"field": field})
    return url.strip()


def validate_contact_link(url: Any, allowed_hosts: Iterable[str] = ()) -> str:
    parsed = _parse_url(url)
    if parsed is None:
        raise InvalidContactLink()

    allowed = [h.lower() for h in allowed_hosts]
    if allowed:
        host = parsed.host.lower()
        if not any(host == h or host.endswith("." + h) for h in allowed):
            raise InvalidContactLink(
                f"Contact link must point to one of: {', '.join(allowed)}",
                details={"allowed_hosts": allowed},
            )
    return url.strip()
