"""
Solana JSON-RPC access used by the transaction builder.

Only two calls are needed: the latest blockhash (to bind a transaction to a
recent checkpoint) and an account balance. Failures are reported as
LedgerUnavailable immediately; nothing is retried.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import httpx
from solders.hash import Hash
from solders.pubkey import Pubkey

from action_channels.errors import LedgerUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    """A recent blockhash and when it was fetched."""

    blockhash: Hash
    last_valid_block_height: int
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (now - self.fetched_at).total_seconds()


class LedgerClient(Protocol):
    def latest_blockhash(self) -> Checkpoint: ...

    def get_balance(self, account: Pubkey) -> int: ...

    def close(self) -> None: ...


class RpcLedgerClient:
    """Blocking JSON-RPC client for a Solana node."""

    def __init__(
        self,
        url: str,
        *,
        commitment: str = "confirmed",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.commitment = commitment
        self._client = client or httpx.Client(timeout=timeout)
        self._ids = itertools.count(1)

    def close(self) -> None:
        self._client.close()

    def _call(self, method: str, params: List[Any]) -> Dict[str, Any]:
        request = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self._client.post(self.url, json=request)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            logger.warning("RPC %s failed: %s", method, e)
            raise LedgerUnavailable() from e
        except ValueError as e:
            logger.warning("RPC %s returned a non-JSON body", method)
            raise LedgerUnavailable() from e

        if not isinstance(body, dict):
            raise LedgerUnavailable()
        if body.get("error"):
            logger.warning("RPC %s returned error: %s", method, body["error"])
            raise LedgerUnavailable()
        result = body.get("result")
        if not isinstance(result, dict) or "value" not in result:
            logger.warning("RPC %s returned an unexpected result: %r", method, result)
            raise LedgerUnavailable()
        return result

    def latest_blockhash(self) -> Checkpoint:
        result = self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        value = result["value"]
        try:
            blockhash = Hash.from_string(value["blockhash"])
            height = int(value["lastValidBlockHeight"])
        except Exception as e:  # solders raises ParseHashError, not ValueError
            logger.warning("Malformed getLatestBlockhash value: %r", value)
            raise LedgerUnavailable() from e
        return Checkpoint(blockhash=blockhash, last_valid_block_height=height)

    def get_balance(self, account: Pubkey) -> int:
        result = self._call("getBalance", [str(account), {"commitment": self.commitment}])
        value = result["value"]
        if isinstance(value, bool) or not isinstance(value, int):
            raise LedgerUnavailable()
        return value
