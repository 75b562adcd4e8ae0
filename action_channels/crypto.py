import json
import base64
from decimal import Decimal, localcontext

from solders.pubkey import Pubkey

LAMPORTS_PER_SOL = 1_000_000_000


def canonical_dumps(obj) -> bytes:
    """
    Returns the canonical JSON representation of the object as bytes.
    Rules:
    - UTF-8 encoding
    - Keys sorted recursively
    - No whitespace (separators=(',', ':'))
    """
    return json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def to_lamports(sol: Decimal) -> int:
    """
    Converts a SOL amount to lamports exactly.

    Raises:
        ValueError: if the amount is not a whole number of lamports.
    """
    # Enough precision that the product is never rounded
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(sol.as_tuple().digits) + 12)
        lamports = sol * LAMPORTS_PER_SOL
    if lamports != lamports.to_integral_value():
        raise ValueError(f"{sol} SOL is not a whole number of lamports")
    return int(lamports)


def format_sol(sol: Decimal) -> str:
    """
    Renders a SOL amount without exponent or trailing zeros ("0.5", "1000").
    """
    text = format(sol, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def parse_pubkey(value: str) -> Pubkey:
    """
    Parses a base58 Solana address.

    Raises:
        ValueError: if the value is empty or not a 32-byte base58 key.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("address is empty")
    return Pubkey.from_string(value.strip())


def b64encode(payload: bytes) -> str:
    return base64.b64encode(payload).decode('ascii')
