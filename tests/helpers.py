import json


class FakeSocket:
    """Stands in for a WebSocket: records what was sent and how it was closed."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.closed = None
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket is closed")
        self.sent.append(message)

    async def close(self, code=1000, reason=""):
        self.closed = (code, reason)


def fake_completion(response=None, error=None):
    """Async completion stub returning `response` (dict -> JSON text) or raising `error`."""
    calls = []

    async def complete(prompt):
        calls.append(prompt)
        if error is not None:
            raise error
        if isinstance(response, dict):
            return "Here is the extraction:\n```json\n" + json.dumps(response) + "\n```"
        return response or ""

    complete.calls = calls
    return complete
