"""Tests for MessagePartAccumulator assembly and lifecycle."""

from vicoa_bridge.shared.accumulator import (
    MessagePartAccumulator,
    MessagePartState,
    set_part_content,
)
from vicoa_bridge.shared.models.parts import (
    FilePart,
    PatchPart,
    ReasoningPart,
    TextPart,
    ToolPart,
    ToolState,
    UnknownPart,
)


def _text(part_id: str, text: str = "", message_id: str = "msg_1") -> TextPart:
    return TextPart(id=part_id, message_id=message_id, text=text)


class TestTextParts:
    def test_deltas_accumulate(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1"), delta="Hello")
        acc.apply_part_event(_text("p1"), delta=" world")
        assert acc.assemble("msg_1") == "Hello world"

    def test_full_text_overwrites_accumulated(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1"), delta="Hel")
        acc.apply_part_event(_text("p1", "Hello there"))
        assert acc.assemble("msg_1") == "Hello there"

    def test_empty_snapshot_keeps_accumulated_text(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1"), delta="partial")
        acc.apply_part_event(_text("p1", ""))
        assert acc.assemble("msg_1") == "partial"

    def test_first_seen_order(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("b", "second"))
        acc.apply_part_event(_text("a", "first"))
        acc.apply_part_event(_text("b", "second, revised"))
        assert acc.assemble("msg_1") == "second, revised\n\nfirst"

    def test_texts_returns_raw_text_in_order(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1", "one"))
        acc.apply_part_event(ReasoningPart(id="r1", message_id="msg_1", text="hmm"))
        acc.apply_part_event(_text("p2", "two"))
        assert acc.texts("msg_1") == ["one", "two"]
        assert acc.texts("missing") == []


class TestOtherParts:
    def test_image_file_rendered(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(FilePart(
            id="f1", message_id="msg_1", mime="image/png",
            filename="shot.png", url="https://example.com/shot.png",
        ))
        assert acc.assemble("msg_1") == "![shot.png](https://example.com/shot.png)"

    def test_image_without_filename(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(FilePart(
            id="f1", message_id="msg_1", mime="image/jpeg", url="data:image/jpeg;base64,xx",
        ))
        assert acc.assemble("msg_1") == "![image](data:image/jpeg;base64,xx)"

    def test_non_image_file_dropped(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(FilePart(
            id="f1", message_id="msg_1", mime="text/plain",
            filename="notes.txt", url="file:///notes.txt",
        ))
        assert acc.assemble("msg_1") == ""

    def test_patch_and_unknown_dropped(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(PatchPart(id="x", message_id="msg_1", files=["a.py"]))
        acc.apply_part_event(UnknownPart(id="y", message_id="msg_1", type="step-start"))
        assert acc.assemble("msg_1") == ""

    def test_tool_parts_not_accumulated(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(ToolPart(
            id="t1", message_id="msg_1", tool="bash",
            state=ToolState(status="completed", input={"command": "ls"}, output="a"),
        ))
        assert "msg_1" not in acc

    def test_reasoning_truncated(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(ReasoningPart(id="r1", message_id="msg_1", text="x" * 250))
        assert acc.assemble("msg_1") == "[Thinking: " + "x" * 200 + "...]"

    def test_empty_reasoning_contributes_nothing(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1", "answer"))
        acc.apply_part_event(ReasoningPart(id="r1", message_id="msg_1", text=""))
        assert acc.assemble("msg_1") == "answer"

    def test_part_without_message_id_ignored(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1", "orphan", message_id=""))
        assert len(acc) == 0


class TestLifecycle:
    def test_assemble_is_idempotent(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1", "same"))
        assert acc.assemble("msg_1") == acc.assemble("msg_1") == "same"
        assert "msg_1" in acc

    def test_finalize_discards_state(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1"), delta="Hello")
        acc.apply_part_event(_text("p1"), delta=" world")
        acc.apply_part_event(ReasoningPart(id="r1", message_id="msg_1", text="check the docs"))
        assert acc.finalize("msg_1") == "Hello world\n\n[Thinking: check the docs]"
        assert "msg_1" not in acc
        assert acc.assemble("msg_1") == ""

    def test_messages_are_independent(self):
        acc = MessagePartAccumulator()
        acc.apply_part_event(_text("p1", "one", message_id="a"))
        acc.apply_part_event(_text("p2", "two", message_id="b"))
        acc.discard("a")
        assert acc.assemble("b") == "two"

    def test_unfinalized_messages_are_bounded(self):
        acc = MessagePartAccumulator(max_messages=2)
        for message_id in ("a", "b", "c"):
            acc.apply_part_event(_text("p1", message_id, message_id=message_id))
        assert len(acc) == 2
        assert "a" not in acc
        assert acc.assemble("c") == "c"


def test_set_part_content_empty_keeps_slot():
    state = MessagePartState()
    set_part_content(state, "p1", "hello")
    set_part_content(state, "p1", "")
    assert state.order == ["p1"]
    assert "p1" not in state.parts
