import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, FastAPI, Request

from action_channels import responder
from action_channels.errors import InvalidPayerAddress, register_error_handlers
from action_channels.ledger import RpcLedgerClient
from action_channels.logging_config import setup_logging
from action_channels.registry import ChannelRegistry
from action_channels.schemas import (
    ActionMetadata,
    ActionPostRequest,
    ActionPostResponse,
    ChannelSummary,
    ErrorResponse,
    RegisterRequest,
    RegisterResponse,
)
from action_channels.settings import (
    ACTION_VERSION,
    BLOCKCHAIN_ID,
    DATA_FILE,
    LOG_LEVEL,
    POLICY,
    RPC_COMMITMENT,
    RPC_TIMEOUT,
    RPC_URL,
)
from action_channels.store import JsonFileStore
from action_channels.transactions import TransactionBuilder

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

store = JsonFileStore(DATA_FILE, route_prefix=POLICY.route_prefix)
registry = ChannelRegistry(store, POLICY)
builder = TransactionBuilder(
    RpcLedgerClient(RPC_URL, commitment=RPC_COMMITMENT, timeout=RPC_TIMEOUT), POLICY
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Serving channels under %s from %s", POLICY.route_prefix, DATA_FILE)
    yield
    # Shutdown: release the ledger connection pool
    builder.ledger.close()
    logger.info("Ledger client closed")


app = FastAPI(
    title="Action Channels",
    summary="Register payable channels and build unsigned payment transactions.",
    lifespan=lifespan,
)
register_error_handlers(app)

# Mounted under the same prefix that channel routes are derived with
router = APIRouter(prefix=POLICY.route_prefix, tags=["channels"])


@app.middleware("http")
async def add_action_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Action-Version"] = ACTION_VERSION
    response.headers["X-Blockchain-Ids"] = BLOCKCHAIN_ID
    return response


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.post("", status_code=201, response_model=RegisterResponse, responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
def register_channel(body: RegisterRequest):
    record = registry.register(body)
    return RegisterResponse(route=record.route, channelName=record.channel_name)


@router.get("", response_model=List[ChannelSummary])
def list_channels():
    return registry.list_channels()


@router.get("/{name}", response_model=ActionMetadata, responses={404: {"model": ErrorResponse}})
def describe_channel(name: str):
    record = registry.resolve(name)
    return responder.describe(record, registry.policy)


@router.post("/{name}", response_model=ActionPostResponse, responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}})
def build_channel_payment(name: str, body: ActionPostRequest):
    if body.account is None:
        raise InvalidPayerAddress("Account is required")
    record = registry.resolve(name)
    unsigned = builder.build_payment(record, body.account)
    return responder.present(unsigned, record)


app.include_router(router)
