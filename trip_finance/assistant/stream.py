"""
Incremental decoder for the assistant's event stream.

The completion endpoint answers with newline-delimited lines:

    : keep-alive comment
    data: {"choices":[{"delta":{"content":"Hel"}}]}
    data: {"choices":[{"delta":{"content":"lo"}}]}
    data: [DONE]

Chunks arrive at arbitrary boundaries, so a line (or a UTF-8
character) can be split across two reads. Nothing is parsed until a
full line is buffered, and nothing buffered is ever dropped before
end-of-stream.
"""

import codecs
import json
from typing import Any, Optional, Union

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

# Returned by _parse_payload when the JSON may still be arriving
_INCOMPLETE = object()


def extract_content(event: Any) -> Optional[str]:
    """Return choices[0].delta.content when it is a non-empty string."""
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def _split_line(buffer: str) -> Optional[tuple[str, str]]:
    """Split off the first complete line (without \\r\\n), or None if there is none."""
    newline = buffer.find("\n")
    if newline < 0:
        return None
    line = buffer[:newline]
    if line.endswith("\r"):
        line = line[:-1]
    return line, buffer[newline + 1:]


class StreamDecoder:
    """
    Turns raw chunks into snapshots of the accumulated text.

    feed() returns one snapshot per content-bearing event recognized in
    that round, in order. After [DONE] or finish() every feed returns [].

    A data line whose JSON does not parse is treated as not yet
    complete: the decoder tries to join it with the following complete
    lines (a payload with embedded newlines), stopping at the next blank
    or data line. If no join parses, the line stays at the front of the
    buffer, together with everything after it, until more data arrives
    or the stream ends.
    """

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        """Forget everything, ready for a new query."""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.pending = ""
        self._text = ""
        self._scanned = 0
        self._done = False
        self._finished = False

    @property
    def text(self) -> str:
        """Accumulated content so far."""
        return self._text

    @property
    def done(self) -> bool:
        """True once [DONE] was seen or the stream was finished."""
        return self._done or self._finished

    def feed(self, chunk: Union[bytes, str]) -> list[str]:
        if self.done:
            return []
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._utf8.decode(bytes(chunk))
        self.pending += chunk
        return self._drain()

    def finish(self) -> str:
        """
        Mark end-of-stream and return the final text.

        Any partial line or unresolved payload left in the buffer is discarded.
        """
        self._utf8.decode(b"", final=True)
        self.pending = ""
        self._scanned = 0
        self._finished = True
        return self._text

    def _drain(self) -> list[str]:
        snapshots = []

        while not self._done:
            split = _split_line(self.pending)
            if split is None:
                break
            line, rest = split

            if not line.startswith(DATA_PREFIX):
                # Comments, blank lines and other fields
                self.pending = rest
                continue

            payload = line[len(DATA_PREFIX):].strip()
            if payload == DONE_SENTINEL:
                self.pending = rest
                self._done = True
                break

            event, rest = self._parse_payload(payload, rest)
            if event is _INCOMPLETE:
                break

            self.pending = rest
            content = extract_content(event)
            if content:
                self._text += content
                snapshots.append(self._text)

        return snapshots

    def _parse_payload(self, payload: str, rest: str) -> tuple[Any, str]:
        """
        Parse a data payload, borrowing following lines if needed.

        Returns (event, remaining buffer) or (_INCOMPLETE, rest) when
        no complete JSON can be formed from the lines buffered so far.
        Continuation lines that were already tried in an earlier round
        are skipped; a blank line or another data line ends the search.
        """
        try:
            event = json.loads(payload)
        except ValueError:
            pass
        else:
            self._scanned = 0
            return event, rest

        position = self._scanned
        while True:
            newline = rest.find("\n", position)
            if newline < 0:
                self._scanned = position
                return _INCOMPLETE, rest

            extra = rest[position:newline].rstrip("\r")
            if not extra or extra.startswith(DATA_PREFIX):
                # Next event starts here
                self._scanned = position
                return _INCOMPLETE, rest

            position = newline + 1
            try:
                event = json.loads(f"{payload}\n{rest[:newline]}")
            except ValueError:
                continue
            self._scanned = 0
            return event, rest[position:]
