"""
Tests for the incremental stream decoder.
"""

import json

import pytest

from trip_finance.assistant.stream import StreamDecoder, extract_content


def event(content):
    return f"data: {json.dumps({'choices': [{'delta': {'content': content}}]}, ensure_ascii=False)}\n"


class TestStreamDecoder:
    """Tests for StreamDecoder.feed and framing rules."""

    def test_two_chunks_accumulate(self):
        """Test Hel + lo gives one intermediate and one final snapshot."""
        decoder = StreamDecoder()
        first = decoder.feed('data: {"choices":[{"delta":{"content":"Hel"}}]}\n')
        second = decoder.feed('data: {"choices":[{"delta":{"content":"lo"}}]}\n')
        assert first == ["Hel"]
        assert second == ["Hello"]
        assert decoder.text == "Hello"

    def test_line_split_across_chunks(self):
        """Test that nothing is parsed until the line is complete."""
        decoder = StreamDecoder()
        assert decoder.feed('data: {"choices":[{"delta":') == []
        assert decoder.feed('{"content":"X"}}]}\n') == ["X"]

    def test_json_split_by_newline(self):
        """Test a payload broken over two lines is reassembled."""
        decoder = StreamDecoder()
        assert decoder.feed('data: {"choices":[{"delta":\n') == []
        assert decoder.pending == 'data: {"choices":[{"delta":\n'
        assert decoder.feed('{"content":"X"}}]}\n') == ["X"]
        assert decoder.pending == ""

    def test_several_events_in_one_chunk(self):
        """Test one snapshot per content-bearing event."""
        decoder = StreamDecoder()
        snapshots = decoder.feed(event("a") + event("b") + event("c"))
        assert snapshots == ["a", "ab", "abc"]

    def test_done_stops_extraction(self):
        """Test that lines after [DONE] are never parsed."""
        decoder = StreamDecoder()
        snapshots = decoder.feed(event("fim") + "data: [DONE]\n" + event("extra"))
        assert snapshots == ["fim"]
        assert decoder.done
        assert decoder.feed(event("more")) == []
        assert decoder.text == "fim"

    def test_comments_blank_lines_and_other_fields_ignored(self):
        """Test framing rules for non-data lines."""
        decoder = StreamDecoder()
        snapshots = decoder.feed(
            ": keep-alive\n\nevent: message\nid: 1\n" + event("ok")
        )
        assert snapshots == ["ok"]

    def test_crlf_line_endings(self):
        """Test that a trailing carriage return is trimmed."""
        decoder = StreamDecoder()
        raw = event("a").replace("\n", "\r\n") + "data: [DONE]\r\n"
        assert decoder.feed(raw) == ["a"]
        assert decoder.done

    def test_events_without_content(self):
        """Test role-only and empty deltas produce no snapshot."""
        decoder = StreamDecoder()
        snapshots = decoder.feed(
            'data: {"choices":[{"delta":{"role":"assistant"}}]}\n'
            'data: {"choices":[{"delta":{"content":""}}]}\n'
            'data: {"choices":[]}\n'
            'data: [1, 2]\n'
        )
        assert snapshots == []
        assert decoder.text == ""

    def test_multibyte_character_split(self):
        """Test a UTF-8 character split between two byte chunks."""
        decoder = StreamDecoder()
        raw = event("ção").encode("utf-8")
        split = raw.index("ç".encode("utf-8")) + 1
        assert decoder.feed(raw[:split]) == []
        assert decoder.feed(raw[split:]) == ["ção"]

    def test_payload_split_over_several_rounds(self):
        """Test a payload continued over three lines arriving separately."""
        decoder = StreamDecoder()
        assert decoder.feed('data: {"choices":\n') == []
        assert decoder.feed('[{"delta":\n') == []
        assert decoder.feed('{"content":"X"}}]}\n') == ["X"]
        assert decoder.pending == ""

    def test_malformed_line_holds_following_events(self):
        """Test a broken data line stays at the front with later events behind it."""
        decoder = StreamDecoder()
        snapshots = decoder.feed(event("a") + "data: {broken\n" + event("b"))
        assert snapshots == ["a"]
        assert decoder.text == "a"
        assert decoder.pending == "data: {broken\n" + event("b")

    def test_malformed_line_is_not_rejoined_every_round(self, monkeypatch):
        """Test that a stalled line costs one parse attempt per round."""
        decoder = StreamDecoder()
        decoder.feed(event("a") + "data: {broken\n")

        calls = []
        real_loads = json.loads

        def counting_loads(text, *args, **kwargs):
            calls.append(len(text))
            return real_loads(text, *args, **kwargs)

        monkeypatch.setattr(json, "loads", counting_loads)
        rounds = 300
        for i in range(rounds):
            assert decoder.feed(event(f"x{i}")) == []

        assert len(calls) <= 2 * rounds
        assert max(calls) < 100
        assert decoder.text == "a"
        assert decoder.pending.startswith("data: {broken\n")

    def test_finish_after_malformed_line_keeps_text(self):
        """Test that earlier text survives a complete but malformed data line."""
        decoder = StreamDecoder()
        decoder.feed(event("a") + "data: {broken\n")
        assert decoder.finish() == "a"
        assert decoder.text == "a"
        assert decoder.pending == ""
        assert decoder.done

    def test_finish_discards_partial_line(self):
        """Test that an unterminated trailing line is dropped."""
        decoder = StreamDecoder()
        decoder.feed(event("a") + 'data: {"choices":[{"delta":{"content":"b"}}]}')
        assert decoder.finish() == "a"
        assert decoder.pending == ""
        assert decoder.done
        assert decoder.feed("\n") == []

    def test_reset(self):
        """Test that reset starts a fresh query."""
        decoder = StreamDecoder()
        decoder.feed(event("old") + "data: [DONE]\n")
        decoder.reset()
        assert decoder.text == ""
        assert not decoder.done
        assert decoder.feed(event("new")) == ["new"]

    def test_bytes_and_text_chunks(self):
        """Test that bytes and str chunks can be mixed."""
        decoder = StreamDecoder()
        decoder.feed(event("a").encode("utf-8"))
        assert decoder.feed(event("b")) == ["ab"]


class TestExtractContent:
    """Tests for extract_content."""

    def test_content(self):
        """Test the happy path."""
        assert extract_content({"choices": [{"delta": {"content": "x"}}]}) == "x"

    @pytest.mark.parametrize("event", [
        None,
        "text",
        {},
        {"choices": "x"},
        {"choices": [None]},
        {"choices": [{"delta": None}]},
        {"choices": [{"delta": {"content": 3}}]},
    ])
    def test_malformed_events(self, event):
        """Test that unexpected shapes yield nothing."""
        assert extract_content(event) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
