import logging
from datetime import datetime, timezone
from typing import List

from action_channels import validation
from action_channels.errors import DuplicateChannel, NotFound
from action_channels.routing import derive_route
from action_channels.schemas import ChannelRecord, ChannelSummary, RegisterRequest
from action_channels.settings import ChannelPolicy, LinkMode
from action_channels.store import RecordStore

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Registers channels and looks them up by name."""

    def __init__(self, store: RecordStore, policy: ChannelPolicy):
        self.store = store
        self.policy = policy

    def _validate(self, request: RegisterRequest):
        # Order matters: the first failing check is the one reported
        name = validation.validate_channel_name(request.channel_name)
        description = validation.validate_description(request.description)
        fee = validation.validate_fee(request.fee)
        owner = validation.validate_address(request.public_key)

        cover_image = request.cover_image
        if cover_image is None or (isinstance(cover_image, str) and not cover_image.strip()):
            cover_image = self.policy.default_cover_image
        else:
            cover_image = validation.validate_url(cover_image, "coverImage")

        external_link = None
        if self.policy.link_mode == LinkMode.DIRECT:
            external_link = validation.validate_url(request.link, "link")

        contact_link = validation.validate_contact_link(
            request.contact_link, self.policy.contact_link_allowed_hosts
        )
        return name, description, fee, str(owner), cover_image, external_link, contact_link

    def register(self, request: RegisterRequest) -> ChannelRecord:
        name, description, fee, owner, cover_image, external_link, contact_link = self._validate(request)
        route = derive_route(name, self.policy.route_prefix)
        if external_link is None:
            external_link = self.policy.base_url.rstrip("/") + route

        with self.store.write_lock:
            records = self.store.load()
            if any(r.route == route for r in records):
                raise DuplicateChannel(details={"route": route})

            record = ChannelRecord(
                route=route,
                channelName=name,
                description=description,
                fee=fee,
                coverImage=cover_image,
                ownerAddress=owner,
                externalLink=external_link,
                contactLink=contact_link,
                createdAt=datetime.now(timezone.utc),
            )
            self.store.save([*records, record])

        logger.info("Registered channel %r at %s", name, route)
        return record

    def resolve(self, channel_name: str) -> ChannelRecord:
        route = derive_route(channel_name, self.policy.route_prefix)
        for record in self.store.load():
            if record.route == route:
                return record
        raise NotFound(details={"route": route})

    def list_channels(self) -> List[ChannelSummary]:
        return [record.summary() for record in self.store.load()]
