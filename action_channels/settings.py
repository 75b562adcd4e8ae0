import os
import logging
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class LinkMode(str, Enum):
    DIRECT = "direct"      # caller supplies the post-payment link
    DERIVED = "derived"    # link is base_url + route


class ChannelPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    route_prefix: str = "/channels"
    default_cover_image: str = "https://example.com/default-icon.png"
    link_mode: LinkMode = LinkMode.DERIVED
    base_url: str = "http://localhost:8000"
    contact_link_allowed_hosts: Tuple[str, ...] = ("t.me", "telegram.me")
    skip_balance_check: bool = True
    attach_memo: bool = True
    compute_unit_price: int = 1_000_000
    label_template: str = "Pay {fee} SOL to join"
    checkpoint_max_age: float = 60.0


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    logger.warning("Ignoring %s=%r: expected a boolean", name, raw)
    return default


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: expected a %s", name, raw, cast.__name__)
        return default


def _env_route_prefix(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    prefix = raw.strip().rstrip("/")
    if not prefix.startswith("/") or any(c.isspace() or c in "{}?#" for c in prefix):
        logger.warning("Ignoring %s=%r: expected a path such as /channels", name, raw)
        return default
    return prefix


def load_policy() -> ChannelPolicy:
    defaults = ChannelPolicy()

    link_mode = defaults.link_mode
    raw_mode = os.getenv("CHANNELS_LINK_MODE")
    if raw_mode:
        try:
            link_mode = LinkMode(raw_mode.strip().lower())
        except ValueError:
            logger.warning("Ignoring CHANNELS_LINK_MODE=%r: expected 'direct' or 'derived'", raw_mode)

    hosts = defaults.contact_link_allowed_hosts
    raw_hosts = os.getenv("CHANNELS_CONTACT_HOSTS")
    if raw_hosts is not None:
        hosts = tuple(h.strip().lower() for h in raw_hosts.split(",") if h.strip())

    return ChannelPolicy(
        route_prefix=_env_route_prefix("CHANNELS_ROUTE_PREFIX", defaults.route_prefix),
        default_cover_image=os.getenv("CHANNELS_DEFAULT_COVER_IMAGE", defaults.default_cover_image),
        link_mode=link_mode,
        base_url=os.getenv("CHANNELS_BASE_URL", defaults.base_url),
        contact_link_allowed_hosts=hosts,
        skip_balance_check=_env_bool("CHANNELS_SKIP_BALANCE_CHECK", defaults.skip_balance_check),
        attach_memo=_env_bool("CHANNELS_ATTACH_MEMO", defaults.attach_memo),
        compute_unit_price=_env_number("CHANNELS_COMPUTE_UNIT_PRICE", defaults.compute_unit_price, int),
        label_template=os.getenv("CHANNELS_LABEL_TEMPLATE", defaults.label_template),
        checkpoint_max_age=_env_number("CHANNELS_CHECKPOINT_MAX_AGE", defaults.checkpoint_max_age, float),
    )


POLICY = load_policy()

DATA_FILE = os.getenv("CHANNELS_DATA_FILE", "data.json")

RPC_URL = os.getenv("SOLANA_RPC_URL", "https://api.devnet.solana.com")
RPC_COMMITMENT = os.getenv("SOLANA_COMMITMENT", "confirmed")
RPC_TIMEOUT = _env_number("SOLANA_RPC_TIMEOUT", 10.0, float)

# Advertised on every response
BLOCKCHAIN_ID = os.getenv("SOLANA_BLOCKCHAIN_ID", "solana:EtWTRABZaYq6iMfeYKouRu166VU2xqa1")
ACTION_VERSION = os.getenv("ACTION_VERSION", "2.4")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
