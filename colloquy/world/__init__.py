"""World state: snapshots, the action applier and the async gateway."""

from .actions import handle_agent_action
from .gateway import WorldGateway, list_messages
from .snapshot import capture_snapshot, get_agent_snapshot

__all__ = [
    "WorldGateway",
    "capture_snapshot",
    "get_agent_snapshot",
    "handle_agent_action",
    "list_messages",
]
