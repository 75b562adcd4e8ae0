import base64
import struct
from unittest.mock import patch

from fastapi.testclient import TestClient
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import Transaction

import action_channels.main as main_module
from action_channels.main import app
from action_channels.registry import ChannelRegistry
from action_channels.settings import ACTION_VERSION, BLOCKCHAIN_ID, ChannelPolicy
from action_channels.store import InMemoryStore
from action_channels.transactions import TransactionBuilder
from conftest import FakeLedger, new_address

client = TestClient(app)


def _patched(ledger=None, store=None, policy=None):
    policy = policy or ChannelPolicy()
    registry = ChannelRegistry(store or InMemoryStore(), policy)
    builder = TransactionBuilder(ledger or FakeLedger(), policy)
    return patch.multiple(main_module, registry=registry, builder=builder)


def _register(**overrides):
    body = {
        "channelName": "Test Show",
        "description": "Support my show please",
        "fee": 0.5,
        "publicKey": overrides.pop("publicKey", None) or new_address(),
        "contactLink": "https://t.me/testshow",
    }
    body.update(overrides)
    return client.post(main_module.POLICY.route_prefix, json=body)


def test_healthz():
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Action-Version"] == ACTION_VERSION
    assert response.headers["X-Blockchain-Ids"] == BLOCKCHAIN_ID


def test_end_to_end():
    owner = new_address()
    payer = new_address()

    with _patched():
        created = _register(publicKey=owner)
        assert created.status_code == 201
        assert created.json()["route"] == "/channels/test-show"
        assert created.json()["channelName"] == "Test Show"

        described = client.get("/channels/test-show")
        assert described.status_code == 200
        meta = described.json()
        assert meta["title"] == "Test Show"
        assert meta["description"] == "Support my show please"
        assert meta["icon"] == "https://example.com/default-icon.png"
        assert meta["label"] == "Pay 0.5 SOL to join"

        built = client.post("/channels/test-show", json={"account": payer})
        assert built.status_code == 200
        data = built.json()
        assert data["type"] == "transaction"
        assert data["channelLink"] == "http://localhost:8000/channels/test-show"
        assert data["contactLink"] == "https://t.me/testshow"
        assert "https://t.me/testshow" in data["message"]
        assert built.headers["X-Blockchain-Ids"] == BLOCKCHAIN_ID

        tx = Transaction.from_bytes(base64.b64decode(data["transaction"]))
        keys = tx.message.account_keys
        assert str(keys[0]) == payer
        transfer = tx.message.instructions[0]
        assert keys[transfer.program_id_index] == SYSTEM_PROGRAM_ID
        assert str(keys[transfer.accounts[1]]) == owner
        _, lamports = struct.unpack("<IQ", bytes(transfer.data))
        assert lamports == 500_000_000


def test_register_duplicate():
    with _patched():
        assert _register().status_code == 201
        response = _register(channelName="test   SHOW")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_CHANNEL"


def test_register_validation_errors():
    with _patched():
        cases = [
            ({"channelName": "x"}, "INVALID_NAME"),
            ({"description": "too short"}, "INVALID_DESCRIPTION"),
            ({"fee": 0}, "INVALID_FEE"),
            ({"fee": 1000.01}, "INVALID_FEE"),
            ({"publicKey": "not-a-key"}, "INVALID_ADDRESS"),
            ({"coverImage": "nope"}, "INVALID_URL"),
            ({"contactLink": "https://example.com"}, "INVALID_CONTACT_LINK"),
        ]
        for overrides, code in cases:
            response = _register(**overrides)
            assert response.status_code == 400, overrides
            error = response.json()["error"]
            assert error["code"] == code
            assert error["message"]

        assert client.get("/channels").json() == []


def test_malformed_body():
    with _patched():
        response = client.post("/channels", content=b"not json", headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


def test_list_channels_hides_owner():
    with _patched():
        _register(channelName="First One")
        _register(channelName="Second One", fee=1)

        response = client.get("/channels")
        assert response.status_code == 200
        items = response.json()
        assert [i["channelName"] for i in items] == ["First One", "Second One"]
        assert items[0]["fee"] == 0.5
        for item in items:
            assert "ownerAddress" not in item
            assert "publicKey" not in item


def test_not_found():
    with _patched():
        response = client.get("/channels/missing")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

        response = client.post("/channels/missing", json={"account": new_address()})
        assert response.status_code == 404


def test_build_requires_account():
    with _patched():
        _register()
        response = client.post("/channels/test-show", json={})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYER_ADDRESS"

        response = client.post("/channels/test-show", json={"account": "garbage"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYER_ADDRESS"


def test_ledger_unavailable():
    with _patched(ledger=FakeLedger(fail=True)):
        _register()
        response = client.post("/channels/test-show", json={"account": new_address()})
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "LEDGER_UNAVAILABLE"


def test_insufficient_funds():
    policy = ChannelPolicy(skip_balance_check=False)
    with _patched(ledger=FakeLedger(balance=0), policy=policy):
        _register()
        response = client.post("/channels/test-show", json={"account": new_address()})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INSUFFICIENT_FUNDS"


def test_storage_errors_hide_internals(tmp_path):
    from action_channels.store import JsonFileStore

    path = tmp_path / "data.json"
    path.write_text("{broken", encoding="utf-8")
    with _patched(store=JsonFileStore(path)):
        response = client.get("/channels")
        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "STORAGE_READ_ERROR"
        assert str(tmp_path) not in response.text


def test_unexpected_errors_use_error_envelope():
    lenient = TestClient(app, raise_server_exceptions=False)
    policy = ChannelPolicy(label_template="Pay {amount} SOL")
    with _patched(policy=policy):
        _register()
        response = lenient.get("/channels/test-show")
        assert response.status_code == 500
        assert response.json() == {
            "error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred", "details": None}
        }
        assert "amount" not in response.text


def test_shutdown_closes_ledger_client():
    ledger = FakeLedger()
    with _patched(ledger=ledger):
        with TestClient(app) as running:
            assert running.get("/healthz").status_code == 200
            assert ledger.closed is False
        assert ledger.closed is True


def test_channel_paths_follow_route_prefix():
    prefix = main_module.POLICY.route_prefix
    paths = {route.path for route in app.routes}
    assert {prefix, f"{prefix}/{{name}}"} <= paths

    with _patched():
        created = _register()
        route = created.json()["route"]
        assert route.startswith(f"{prefix}/")
        assert client.get(route).status_code == 200
