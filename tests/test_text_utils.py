"""Tests for transcript helpers."""

from colloquy.core.models import ChatMessage
from colloquy.simulation.text_utils import (
    build_history,
    compute_trigram_jaccard,
    render_message,
    strip_speaker,
)


class TestTrigramJaccard:
    def test_identical(self):
        assert compute_trigram_jaccard("the cat sat down", "The cat sat down") == 1.0

    def test_short_texts_never_match(self):
        assert compute_trigram_jaccard("hi there", "hi there") == 0.0

    def test_disjoint(self):
        assert compute_trigram_jaccard("one two three", "four five six") == 0.0


class TestHistory:
    def test_render_and_build(self):
        message = ChatMessage(from_name="Alice", to_names=["Bob", "Cleo"], content="Hi!", ts=1.0)
        assert render_message(message) == "Alice to Bob,Cleo: Hi!\n"

        (entry,) = build_history([message])
        assert entry.role == "user"
        assert entry.content == "Alice to Bob,Cleo: Hi!\n"

    def test_strip_speaker(self):
        assert strip_speaker("Alice to Bob: Hi: there\n") == "Hi: there"
        assert strip_speaker("no prefix") == "no prefix"
