"""Action applier.

``handle_agent_action`` validates one action against the world and, if it
passes, records it in a single transaction. Rule violations never raise:
they are logged and reported as ``None`` so the caller can decide how
fatal a rejection is.
"""

import logging

from ..core.models import (
    Action,
    DoneAction,
    DoneData,
    JournalEntry,
    Player,
    StartConversationAction,
    StartConversationData,
    TalkingAction,
    TalkingData,
)
from ..storage import WorldDB

logger = logging.getLogger(__name__)


def _reject(player: Player | None, action: Action, reason: str) -> None:
    who = player.name if player else "?"
    logger.warning(f"[ACTION] Rejected {action.type} from {who}: {reason}")
    return None


def _audience_error(db: WorldDB, actor: Player, audience: list[str]) -> str | None:
    for pid in audience:
        if pid == actor.id:
            return "actor cannot address itself"
        other = db.get_player(pid)
        if other is None or other.world_id != actor.world_id:
            return f"unknown audience member {pid!r}"
    return None


def _start_conversation(
    db: WorldDB, actor: Player, action: StartConversationAction
) -> JournalEntry | None:
    if not action.audience:
        return _reject(actor, action, "empty audience")
    if err := _audience_error(db, actor, action.audience):
        return _reject(actor, action, err)
    if db.conversations_for_member(actor.id):
        return _reject(actor, action, "already in a conversation")

    cid = db.create_conversation(actor.world_id, actor.id, action.audience)
    return db.insert_journal_entry(
        actor.id,
        actor.world_id,
        StartConversationData(audience=action.audience, conversation_id=cid),
    )


def _talking(db: WorldDB, actor: Player, action: TalkingAction) -> JournalEntry | None:
    conversation = db.get_conversation(action.conversation_id)
    if conversation is None or conversation["world_id"] != actor.world_id:
        return _reject(actor, action, f"unknown conversation {action.conversation_id!r}")
    if not db.is_member(action.conversation_id, actor.id):
        return _reject(actor, action, "actor is not a member of the conversation")
    if not action.content.strip():
        return _reject(actor, action, "empty content")
    if err := _audience_error(db, actor, action.audience):
        return _reject(actor, action, err)

    return db.insert_journal_entry(
        actor.id,
        actor.world_id,
        TalkingData(
            audience=action.audience,
            content=action.content,
            conversation_id=action.conversation_id,
        ),
    )


def _done(db: WorldDB, actor: Player, action: DoneAction) -> JournalEntry | None:
    thinking = db.get_journal_entry(action.think_id)
    if thinking is None or thinking.data.type != "thinking":
        return _reject(actor, action, f"unknown think id {action.think_id!r}")
    if thinking.player_id != actor.id:
        return _reject(actor, action, "think id belongs to another player")
    if db.is_thinking_closed(action.think_id):
        return _reject(actor, action, "decision-cycle already closed")

    return db.insert_journal_entry(
        actor.id, actor.world_id, DoneData(think_id=action.think_id)
    )


_HANDLERS = {
    "start_conversation": _start_conversation,
    "talking": _talking,
    "done": _done,
}


def handle_agent_action(db: WorldDB, player_id: str, action: Action) -> JournalEntry | None:
    """Apply one action for ``player_id``.

    Returns the recorded journal entry, or ``None`` if the action was rejected.
    All reads and writes for the action happen in one transaction.
    """
    with db.transaction():
        actor = db.get_player(player_id)
        if actor is None:
            return _reject(None, action, f"unknown player {player_id!r}")
        entry = _HANDLERS[action.type](db, actor, action)

    if entry is not None:
        logger.debug(f"[ACTION] {actor.name}: {action.type} -> {entry.id}")
    return entry
