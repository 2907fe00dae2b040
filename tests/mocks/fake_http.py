from __future__ import annotations
import json as _json
from typing import Any, Callable, Dict, List


class FakeResponse:
    """Just enough of requests.Response for the provider clients."""

    def __init__(self, status_code: int = 200, payload: Any = None, headers: Dict[str, str] | None = None,
                 reason: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.reason = reason
        self.content = b"" if payload is None else _json.dumps(payload).encode("utf-8")
        self.text = self.content.decode("utf-8")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeHttp:
    """Stand-in for requests.Session.

    ``responses`` is either a list consumed in order or a callable
    ``(method, url, params, json) -> FakeResponse | Exception``.
    """

    def __init__(self, responses: List[Any] | Callable[..., Any]):
        self.responses = responses
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "params": params, "json": json,
                           "timeout": timeout})
        if callable(self.responses):
            result = self.responses(method, url, params, json)
        else:
            result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result
