"""Tests for webhook payload text extraction."""

import json

import pytest

from issue_bridge.connectors.github.events import SUPPORTED_EVENTS, extract_texts


def _body(payload: dict) -> bytes:
    return json.dumps(payload).encode()


class TestExtractTexts:
    def test_push_commit_messages_in_order(self):
        body = _body(
            {"commits": [{"message": "Fix MIR-1"}, {"message": "Refs MIR-2"}], "ref": "refs/heads/main"}
        )
        assert extract_texts("push", body) == ["Fix MIR-1", "Refs MIR-2"]

    def test_pull_request_title_and_body(self):
        body = _body({"action": "opened", "pull_request": {"title": "MIR-3 title", "body": "closes MIR-4"}})
        assert extract_texts("pull_request", body) == ["MIR-3 title", "closes MIR-4"]

    def test_issues_null_body(self):
        body = _body({"issue": {"title": "MIR-5", "body": None}})
        assert extract_texts("issues", body) == ["MIR-5", ""]

    @pytest.mark.parametrize("event", ["issue_comment", "pull_request_review_comment"])
    def test_comment_events(self, event):
        body = _body({"comment": {"body": "see MIR-6"}})
        assert extract_texts(event, body) == ["see MIR-6"]

    def test_review_body(self):
        body = _body({"review": {"body": "LGTM for MIR-7", "state": "approved"}})
        assert extract_texts("pull_request_review", body) == ["LGTM for MIR-7"]

    def test_unknown_event_is_empty(self):
        assert extract_texts("star", _body({"commits": [{"message": "MIR-1"}]})) == []

    def test_invalid_json_is_empty(self):
        assert extract_texts("push", b"{not json") == []

    def test_wrong_shape_is_empty(self):
        assert extract_texts("push", _body({"commits": "not a list"})) == []

    def test_missing_section_is_empty_strings(self):
        assert extract_texts("pull_request", _body({"action": "closed"})) == ["", ""]

    def test_supported_events(self):
        assert SUPPORTED_EVENTS == {
            "push",
            "pull_request",
            "issues",
            "issue_comment",
            "pull_request_review",
            "pull_request_review_comment",
        }
