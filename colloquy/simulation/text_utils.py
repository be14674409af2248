"""Text utilities for conversation transcripts."""

from ..core.models import ChatMessage, HistoryMessage


def compute_trigram_jaccard(text1: str, text2: str) -> float:
    """Compute Jaccard similarity of word-level trigrams.

    Args:
        text1: First text
        text2: Second text

    Returns:
        Jaccard similarity in [0, 1]. >0.7 indicates a near-repeat.
    """

    def word_trigrams(text: str) -> set[tuple[str, ...]]:
        words = text.lower().split()
        if len(words) < 3:
            return set()
        return {tuple(words[i : i + 3]) for i in range(len(words) - 2)}

    t1 = word_trigrams(text1)
    t2 = word_trigrams(text2)
    if not t1 or not t2:
        return 0.0
    return len(t1 & t2) / len(t1 | t2)


def render_message(message: ChatMessage) -> str:
    """Render a chat message as ``"<from> to <to1>,<to2>: <content>\\n"``."""
    return f"{message.from_name} to {','.join(message.to_names)}: {message.content}\n"


def build_history(messages: list[ChatMessage]) -> list[HistoryMessage]:
    """Turn a transcript into the history handed to the decision functions."""
    return [HistoryMessage(role="user", content=render_message(m)) for m in messages]


def strip_speaker(line: str) -> str:
    """Drop the ``"<from> to <...>: "`` prefix of a rendered history line."""
    _, sep, rest = line.partition(": ")
    return rest.strip() if sep else line.strip()
