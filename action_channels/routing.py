import re

_WHITESPACE = re.compile(r"\s+")


def derive_route(channel_name: str, prefix: str = "/channels") -> str:
    """
    Maps a channel name to its lookup key.

    Case and whitespace-run length do not matter:
    "My Channel", "my   channel" and "my-channel" all map to "/channels/my-channel".
    """
    slug = _WHITESPACE.sub("-", channel_name.strip().lower())
    return f"{prefix.rstrip('/')}/{slug}"
