"""Tests for permission presentation and reply correlation."""

import pytest

from vicoa_bridge.shared.models.message import PermissionInfo
from vicoa_bridge.shared.permission import (
    DEFAULT_PERMISSION_OPTIONS,
    Decision,
    PermissionCorrelator,
    PermissionOption,
    build_permission_options,
    format_permission_request,
    parse_permission_reply,
)


def _permission(pid: str = "perm_1", **kwargs) -> PermissionInfo:
    kwargs.setdefault("session_id", "ses_1")
    return PermissionInfo(id=pid, **kwargs)


DEFAULTS = list(DEFAULT_PERMISSION_OPTIONS)


class TestParseReply:
    @pytest.mark.parametrize("reply,expected", [
        ("2", Decision.ALWAYS),
        ("ALLOW", Decision.ONCE),
        ("  Reject ", Decision.REJECT),
        ("allow always", Decision.ALWAYS),
        ("yes", Decision.ONCE),
        ("forever", Decision.ALWAYS),
        ("deny", Decision.REJECT),
        ("nah", None),
        ("please go ahead", None),
        ("", None),
    ])
    def test_default_options(self, reply, expected):
        assert parse_permission_reply(reply, DEFAULTS) == expected

    def test_label_beats_ordinal(self):
        options = [
            PermissionOption("3", Decision.ONCE),
            PermissionOption("Never", Decision.REJECT),
        ]
        assert parse_permission_reply("3", options) == Decision.ONCE

    def test_ordinal_beats_keyword(self):
        options = [
            PermissionOption("Ship it", Decision.REJECT),
            PermissionOption("Hold", Decision.ONCE),
        ]
        assert parse_permission_reply("1", options) == Decision.REJECT

    def test_out_of_range_ordinal_falls_to_keywords(self):
        options = [PermissionOption("Go", Decision.ONCE)]
        assert parse_permission_reply("3", options) == Decision.REJECT
        assert parse_permission_reply("7", options) is None


class TestBuildOptions:
    def test_defaults(self):
        assert build_permission_options(_permission()) == DEFAULTS

    def test_custom_labels_paired_positionally(self):
        options = build_permission_options(_permission(metadata={
            "options": ["Run", "Run always", "Skip", "Ignored"],
        }))
        assert options == [
            PermissionOption("Run", Decision.ONCE),
            PermissionOption("Run always", Decision.ALWAYS),
            PermissionOption("Skip", Decision.REJECT),
        ]

    def test_malformed_metadata_uses_defaults(self):
        assert build_permission_options(_permission(metadata={"options": "yes"})) == DEFAULTS
        assert build_permission_options(_permission(metadata={"options": []})) == DEFAULTS


class TestFormatRequest:
    def test_single_pattern_bash(self):
        text = format_permission_request(
            _permission(type="bash", patterns=["git push"], metadata={"input": {"command": "git push"}}),
            DEFAULTS,
        )
        assert text == (
            "**Permission Required**\n\n**bash** (`git push`)\n```bash\ngit push\n```\n\n"
            "[OPTIONS]\n1. Allow\n2. Allow always\n3. Reject\n[/OPTIONS]"
        )

    def test_multiple_patterns(self):
        text = format_permission_request(_permission(type="edit", patterns=["a.py", "b.py"]), DEFAULTS)
        assert "**edit** (2 patterns)\n  • `a.py`\n  • `b.py`\n" in text

    def test_edit_diff_and_description(self):
        text = format_permission_request(_permission(type="edit", metadata={
            "input": {"old_string": "x", "new_string": "y"},
            "description": "Update constant",
        }), DEFAULTS)
        assert "```diff\n- x\n+ y\n```" in text
        assert "\n\nUpdate constant\n\n[OPTIONS]" in text

    def test_write_preview_truncated(self):
        text = format_permission_request(
            _permission(type="write", metadata={"input": {"content": "z" * 600}}), DEFAULTS,
        )
        assert "z" * 500 + "..." in text
        assert "z" * 501 not in text


class TestCorrelator:
    def test_claim_resolves_once(self):
        correlator = PermissionCorrelator()
        correlator.open(_permission("perm_1"), DEFAULTS, remote_message_id="vm_1")
        claimed = correlator.claim("1")
        assert claimed is not None
        pending, decision = claimed
        assert (pending.id, pending.session_id, pending.remote_message_id) == ("perm_1", "ses_1", "vm_1")
        assert decision == Decision.ONCE
        assert correlator.claim("1") is None
        assert len(correlator) == 0

    def test_non_reply_leaves_pending(self):
        correlator = PermissionCorrelator()
        correlator.open(_permission(), DEFAULTS)
        assert correlator.claim("what does this command do?") is None
        assert "perm_1" in correlator

    def test_first_registered_match_wins(self):
        correlator = PermissionCorrelator()
        correlator.open(_permission("perm_a"), DEFAULTS)
        correlator.open(_permission("perm_b"), DEFAULTS)
        pending, _ = correlator.claim("reject")
        assert pending.id == "perm_a"
        assert "perm_b" in correlator

    def test_discard_after_external_reply(self):
        correlator = PermissionCorrelator()
        correlator.open(_permission(), DEFAULTS)
        assert correlator.discard("perm_1") is True
        assert correlator.discard("perm_1") is False
        assert correlator.claim("allow") is None

    def test_reopen_replaces(self):
        correlator = PermissionCorrelator()
        correlator.open(_permission(), DEFAULTS, remote_message_id="old")
        correlator.open(_permission(), DEFAULTS, remote_message_id="new")
        assert len(correlator) == 1
        assert correlator.get("perm_1").remote_message_id == "new"
