"""Round-robin turn scheduler for a single conversation.

Drives one conversation from opening line to withdrawal. Players act in
the given order, one decision-cycle per player per pass, until a player
withdraws. Every cycle:

1. Capture the player's snapshot (records a durable ``thinking`` marker).
2. Check that no nearby player is mid-cycle.
3. First cycle of the run: check that no conversation exists yet, start
   one with the newly met players and say an opening line.
   Later cycles: check that exactly the established conversation is
   visible, then either withdraw (ending the run) or reply.
4. Close the cycle with ``done``.

When the loop ends, every player records a memory of the conversation.

The world behind ``submit_action`` is assumed linearizable: each
submission is applied atomically, and the scheduler never has two
submissions in flight. The scheduler holds no locks of its own.

Invariant violations and rejected submissions are reported as a
``RunResult`` with a ``RunFailure``; exceptions raised by the world,
the decision functions or the memory store propagate unchanged.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from ..core.models import (
    CycleOutcome,
    CycleReport,
    ConversationPhase,
    DoneAction,
    JournalEntry,
    Player,
    RunFailure,
    RunFailureKind,
    RunResult,
    StartConversationAction,
    TalkingAction,
)
from ..world.gateway import WorldGateway
from .conversation import ConversationDecider
from .memory import MemoryStore
from .text_utils import build_history

logger = logging.getLogger(__name__)


class SchedulerInvariantError(Exception):
    """A consistency check failed or the world rejected a submission."""

    def __init__(self, kind: RunFailureKind, detail: str, player_id: str | None = None):
        super().__init__(f"{kind.value}: {detail}")
        self.kind = kind
        self.detail = detail
        self.player_id = player_id

    def to_failure(self) -> RunFailure:
        return RunFailure(kind=self.kind, detail=self.detail, player_id=self.player_id)


@dataclass
class _RunState:
    """Mutable state of one ``run()`` call."""

    phase: ConversationPhase = ConversationPhase.AWAITING_OPEN
    conversation_id: str | None = None
    done: bool = False
    passes: int = 0
    cycles: int = 0

    def open(self, conversation_id: str) -> None:
        """AWAITING_OPEN -> IN_CONVERSATION; happens exactly once per run."""
        if self.phase is not ConversationPhase.AWAITING_OPEN:
            raise RuntimeError(
                f"Conversation already open ({self.conversation_id}); "
                f"cannot open {conversation_id}"
            )
        self.phase = ConversationPhase.IN_CONVERSATION
        self.conversation_id = conversation_id


class TurnScheduler:
    """Runs one conversation to completion over a fixed list of players.

    Args:
        world: Snapshot capture and action submission
        decider: Opening line, reply and withdrawal decisions
        memory: Records each player's memory of the conversation
        on_cycle: Optional callback invoked after every completed cycle
        clock: Timestamp source for memories
    """

    def __init__(
        self,
        world: WorldGateway,
        decider: ConversationDecider,
        memory: MemoryStore,
        on_cycle: Callable[[CycleReport], None] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.world = world
        self.decider = decider
        self.memory = memory
        self.on_cycle = on_cycle
        self.clock = clock

    async def run(self, player_ids: list[str]) -> RunResult:
        """Drive the conversation; return the result or the first failure."""
        state = _RunState()
        try:
            remembered = await self._run(player_ids, state)
        except SchedulerInvariantError as e:
            logger.error(
                f"[SCHED] Run failed after {state.cycles} cycles "
                f"({e.kind.value}, player={e.player_id}): {e.detail}"
            )
            return RunResult(
                conversation_id=state.conversation_id,
                passes=state.passes,
                cycles=state.cycles,
                failure=e.to_failure(),
            )

        logger.info(
            f"[SCHED] Conversation {state.conversation_id} finished: "
            f"{state.passes} passes, {state.cycles} cycles"
        )
        return RunResult(
            conversation_id=state.conversation_id,
            passes=state.passes,
            cycles=state.cycles,
            remembered=remembered,
        )

    async def _run(self, player_ids: list[str], state: _RunState) -> list[str]:
        if not player_ids:
            raise SchedulerInvariantError(
                RunFailureKind.NO_CONVERSATION, "no players to run a conversation with"
            )

        while not state.done:
            state.passes += 1
            logger.debug(f"[SCHED] Pass {state.passes}")
            for player_id in player_ids:
                await self._cycle(player_id, state)
                state.cycles += 1
                if state.done:
                    break

        if state.conversation_id is None:
            raise SchedulerInvariantError(
                RunFailureKind.NO_CONVERSATION, "loop ended without a conversation"
            )

        now = self.clock()
        remembered = []
        for player_id in player_ids:
            await self.memory.remember_conversation(player_id, state.conversation_id, now)
            remembered.append(player_id)
        return remembered

    async def _cycle(self, player_id: str, state: _RunState) -> None:
        captured = await self.world.capture_snapshot(player_id)
        snapshot, think_id = captured.snapshot, captured.think_id
        player = snapshot.player

        thinking = [n.player.name for n in snapshot.nearby_players if n.thinking]
        if thinking:
            raise SchedulerInvariantError(
                RunFailureKind.UNEXPECTED_THINKING,
                f"{player.name} sees thinking players: {', '.join(thinking)}",
                player_id,
            )

        new_friends = [n.player for n in snapshot.nearby_players if n.new]

        if state.phase is ConversationPhase.AWAITING_OPEN:
            if snapshot.nearby_conversations:
                raise SchedulerInvariantError(
                    RunFailureKind.CONVERSATIONS_BEFORE_START,
                    f"{player.name} already sees {len(snapshot.nearby_conversations)} "
                    f"conversations before the first one was started",
                    player_id,
                )
            content = await self._open(player, new_friends, state)
            outcome = CycleOutcome.OPENED
        else:
            conversations = snapshot.nearby_conversations
            if len(conversations) != 1:
                raise SchedulerInvariantError(
                    RunFailureKind.CONVERSATION_COUNT,
                    f"{player.name} sees {len(conversations)} conversations, expected 1",
                    player_id,
                )
            conversation = conversations[0]
            if conversation.conversation_id != state.conversation_id:
                raise SchedulerInvariantError(
                    RunFailureKind.CONVERSATION_DRIFT,
                    f"{player.name} sees conversation {conversation.conversation_id}, "
                    f"expected {state.conversation_id}",
                    player_id,
                )

            history = build_history(conversation.messages)
            if await self.decider.should_withdraw(history, player):
                state.done = True
                await self._finish(player, think_id)
                self._report(state, player, CycleOutcome.WITHDREW, None)
                return

            content = await self.decider.continue_conversation(
                history, player, snapshot.nearby_players
            )
            await self._submit(
                player,
                TalkingAction(
                    audience=[n.player.id for n in snapshot.nearby_players],
                    content=content,
                    conversation_id=state.conversation_id,
                ),
                RunFailureKind.REPLY_REJECTED,
            )
            outcome = CycleOutcome.REPLIED

        await self._finish(player, think_id)
        self._report(state, player, outcome, content)

    async def _open(self, player: Player, new_friends: list[Player], state: _RunState) -> str:
        audience = [p.id for p in new_friends]
        entry = await self._submit(
            player,
            StartConversationAction(audience=audience),
            RunFailureKind.START_REJECTED,
        )
        state.open(entry.data.conversation_id)
        logger.info(
            f"[SCHED] {player.name} started conversation {state.conversation_id} "
            f"with {', '.join(p.name for p in new_friends)}"
        )

        content = await self.decider.begin_conversation(
            [p.name for p in new_friends], player
        )
        await self._submit(
            player,
            TalkingAction(
                audience=audience,
                content=content,
                conversation_id=state.conversation_id,
            ),
            RunFailureKind.OPENING_REJECTED,
        )
        return content

    async def _finish(self, player: Player, think_id: str) -> None:
        await self._submit(
            player, DoneAction(think_id=think_id), RunFailureKind.COMPLETION_REJECTED
        )

    async def _submit(self, player: Player, action, kind: RunFailureKind) -> JournalEntry:
        entry = await self.world.submit_action(player.id, action)
        if entry is None:
            raise SchedulerInvariantError(
                kind, f"{action.type} from {player.name} was rejected", player.id
            )
        return entry

    def _report(
        self,
        state: _RunState,
        player: Player,
        outcome: CycleOutcome,
        content: str | None,
    ) -> None:
        if self.on_cycle is None:
            return
        self.on_cycle(
            CycleReport(
                pass_index=state.passes,
                player_id=player.id,
                player_name=player.name,
                outcome=outcome,
                content=content,
                conversation_id=state.conversation_id,
            )
        )
