import hashlib
import itertools

import pytest
from solders.hash import Hash
from solders.keypair import Keypair

from action_channels.errors import LedgerUnavailable
from action_channels.ledger import Checkpoint
from action_channels.registry import ChannelRegistry
from action_channels.schemas import RegisterRequest
from action_channels.settings import ChannelPolicy
from action_channels.store import InMemoryStore


class FakeLedger:
    """Hands out a new blockhash on every call, like a live cluster."""

    def __init__(self, balance=10 ** 12, fail=False):
        self.balance = balance
        self.fail = fail
        self.blockhash_calls = 0
        self.balance_calls = []
        self._counter = itertools.count(1)
        self.closed = False

    def latest_blockhash(self):
        if self.fail:
            raise LedgerUnavailable()
        self.blockhash_calls += 1
        n = next(self._counter)
        return Checkpoint(
            blockhash=Hash(hashlib.sha256(f"block-{n}".encode()).digest()),
            last_valid_block_height=1000 + n,
        )

    def get_balance(self, account):
        if self.fail:
            raise LedgerUnavailable()
        self.balance_calls.append(account)
        return self.balance

    def close(self):
        self.closed = True


def new_address() -> str:
    return str(Keypair().pubkey())


def make_request(**overrides) -> RegisterRequest:
    fields = {
        "channelName": "Test Show",
        "description": "Support my show please",
        "fee": 0.5,
        "publicKey": new_address(),
        "contactLink": "https://t.me/testshow",
    }
    fields.update(overrides)
    return RegisterRequest(**fields)


@pytest.fixture
def policy():
    return ChannelPolicy()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def registry(store, policy):
    return ChannelRegistry(store, policy)


@pytest.fixture
def ledger():
    return FakeLedger()
