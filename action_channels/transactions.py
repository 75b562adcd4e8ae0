"""
Builds unsigned payment transactions for a channel.

The payer pays the channel fee to the owner. The transaction optionally
carries a compute-unit price and a memo describing the payment. Amounts are
converted to lamports once, up front, and carried as integers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from solders.compute_budget import set_compute_unit_price
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from action_channels.crypto import canonical_dumps, format_sol, parse_pubkey, to_lamports
from action_channels.errors import (
    InsufficientFunds,
    InvalidPayerAddress,
    LedgerUnavailable,
    StorageReadError,
)
from action_channels.ledger import Checkpoint, LedgerClient
from action_channels.schemas import ChannelRecord
from action_channels.settings import ChannelPolicy

logger = logging.getLogger(__name__)

MEMO_PROGRAM_ID = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")
MEMO_ACTION = "join-channel"


@dataclass(frozen=True)
class UnsignedTransaction:
    payer: Pubkey
    recipient: Pubkey
    lamports: int
    instructions: List[Instruction]
    recent_blockhash: Hash
    last_valid_block_height: int
    fetched_at: datetime
    memo: Optional[bytes] = None

    def to_transaction(self) -> Transaction:
        message = Message.new_with_blockhash(self.instructions, self.payer, self.recent_blockhash)
        return Transaction.new_unsigned(message)

    def serialize(self) -> bytes:
        """Wire bytes with empty signature slots, ready for a wallet to sign."""
        return bytes(self.to_transaction())


def memo_instruction(payload: bytes) -> Instruction:
    return Instruction(MEMO_PROGRAM_ID, payload, [])


class TransactionBuilder:
    def __init__(self, ledger: LedgerClient, policy: ChannelPolicy):
        self.ledger = ledger
        self.policy = policy

    def _parse_payer(self, payer_address) -> Pubkey:
        try:
            payer = parse_pubkey(payer_address)
        except ValueError:
            raise InvalidPayerAddress()
        # Fee payers sign, so the key must be an ed25519 point
        if not payer.is_on_curve():
            raise InvalidPayerAddress("Account must be a wallet address that can sign")
        return payer

    def _fresh_checkpoint(self) -> Checkpoint:
        try:
            checkpoint = self.ledger.latest_blockhash()
        except LedgerUnavailable:
            raise
        except Exception as e:
            logger.error("Blockhash lookup failed: %s", e)
            raise LedgerUnavailable() from e

        age = checkpoint.age_seconds()
        if age > self.policy.checkpoint_max_age:
            logger.warning("Discarding blockhash %s fetched %.1fs ago", checkpoint.blockhash, age)
            raise LedgerUnavailable("The ledger returned a stale blockhash")
        return checkpoint

    def build_payment(self, record: ChannelRecord, payer_address) -> UnsignedTransaction:
        payer = self._parse_payer(payer_address)
        try:
            recipient = parse_pubkey(record.owner_address)
        except ValueError as e:
            logger.error("Stored owner address for %s is invalid: %r", record.route, record.owner_address)
            raise StorageReadError("Channel record is corrupt") from e
        lamports = to_lamports(record.fee)

        if not self.policy.skip_balance_check:
            try:
                balance = self.ledger.get_balance(payer)
            except LedgerUnavailable:
                raise
            except Exception as e:
                logger.error("Balance lookup failed: %s", e)
                raise LedgerUnavailable() from e
            if balance < lamports:
                raise InsufficientFunds(details={"required": lamports, "available": balance})

        instructions = [
            transfer(TransferParams(from_pubkey=payer, to_pubkey=recipient, lamports=lamports))
        ]
        if self.policy.compute_unit_price > 0:
            instructions.append(set_compute_unit_price(self.policy.compute_unit_price))

        memo = None
        if self.policy.attach_memo:
            memo = canonical_dumps({
                "action": MEMO_ACTION,
                "channelName": record.channel_name,
                "fee": format_sol(record.fee),
                "lamports": lamports,
            })
            instructions.append(memo_instruction(memo))

        checkpoint = self._fresh_checkpoint()
        logger.debug(
            "Built payment of %d lamports %s -> %s for %s at %s",
            lamports, payer, recipient, record.route, checkpoint.blockhash,
        )
        return UnsignedTransaction(
            payer=payer,
            recipient=recipient,
            lamports=lamports,
            instructions=instructions,
            recent_blockhash=checkpoint.blockhash,
            last_valid_block_height=checkpoint.last_valid_block_height,
            fetched_at=checkpoint.fetched_at,
            memo=memo,
        )
