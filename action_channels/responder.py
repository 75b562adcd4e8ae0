from action_channels.crypto import b64encode, format_sol
from action_channels.schemas import ActionMetadata, ActionPostResponse, ChannelRecord
from action_channels.settings import ChannelPolicy
from action_channels.transactions import UnsignedTransaction


def describe(record: ChannelRecord, policy: ChannelPolicy) -> ActionMetadata:
    """Discovery payload shown by wallets before the user acts."""
    return ActionMetadata(
        icon=record.cover_image,
        label=policy.label_template.format(fee=format_sol(record.fee), name=record.channel_name),
        title=record.channel_name,
        description=record.description,
    )


def present(unsigned: UnsignedTransaction, record: ChannelRecord) -> ActionPostResponse:
    message = f"Thanks for joining! After payment, you can access the channel at: {record.external_link}"
    if record.contact_link:
        message += f" (Contact: {record.contact_link})"
    return ActionPostResponse(
        transaction=b64encode(unsigned.serialize()),
        message=message,
        channelLink=record.external_link,
        contactLink=record.contact_link,
    )
