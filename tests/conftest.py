"""
tests/conftest.py
-----------------
Shared fakes.  ``make_model`` returns a scripted ModelAdapter that records
every call, so chain tests need no LLM or network access.
"""

import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class FakeModel:
    """A deterministic ModelAdapter.

    ``replies`` are returned in order (the last one repeats).  An exception
    instance in ``replies`` is raised instead of returned.  When streaming is
    requested the reply is yielded in ``chunk_size`` pieces unless
    ``stream_replies`` is False, in which case the full string is returned.
    """

    def __init__(self, *replies, journal=None, chunk_size=3, stream_replies=True, name="fake"):
        self.replies = list(replies) or [""]
        self.calls = []
        self.journal = journal if journal is not None else []
        self.chunk_size = chunk_size
        self.stream_replies = stream_replies
        self.name = name
        self.streams_closed = 0
        self.fragments_sent = 0

    def _next_reply(self):
        reply = self.replies[min(len(self.calls) - 1, len(self.replies) - 1)]
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def generate(self, prompt, context=None, *, max_tokens=None, stream=False):
        self.calls.append(
            {"prompt": prompt, "context": context, "max_tokens": max_tokens, "stream": stream}
        )
        self.journal.append(self.name)
        reply = self._next_reply()
        if stream and self.stream_replies and isinstance(reply, str):
            return self._stream(reply)
        return reply

    async def _stream(self, text):
        try:
            for i in range(0, len(text), self.chunk_size):
                self.fragments_sent += 1
                yield text[i:i + self.chunk_size]
        finally:
            self.streams_closed += 1


@pytest.fixture
def make_model():
    """Factory fixture: ``make_model("reply 1", "reply 2", name="planner")``."""
    return FakeModel


@pytest.fixture
def journal():
    """A shared call log, to check the order in which models were invoked."""
    return []
