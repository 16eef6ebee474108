"""HTTP client abstraction for registry reads.

- HttpClient: Protocol for HTTP operations (injectable for tests)
- RealHttpClient: urllib implementation
- MockHttpClient: canned responses for tests
"""

from __future__ import annotations

import base64
import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from relgate.core.result import Err, Ok, Result
from relgate.core.structured import StrDict, as_str_dict

__all__ = [
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
    "basic_auth_header",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
        timed_out: True when the request hit the client timeout
    """

    url: str
    status: int
    message: str
    timed_out: bool = False

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


def basic_auth_header(user: str, password: str) -> dict[str, str]:
    raw = f"{user}:{password}".encode("utf-8")
    return {"Authorization": "Basic " + base64.b64encode(raw).decode("ascii")}


@runtime_checkable
class HttpClient(Protocol):
    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Result[StrDict, HttpError]:
        """Fetch URL and parse a JSON object."""
        ...

    def get_bytes(self, url: str, headers: dict[str, str] | None = None) -> Result[bytes, HttpError]:
        """Fetch URL and return the raw body."""
        ...


class RealHttpClient:
    """urllib client using system certificates."""

    def __init__(self, timeout: float = 30.0, user_agent: str = "relgate") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def get_bytes(self, url: str, headers: dict[str, str] | None = None) -> Result[bytes, HttpError]:
        try:
            req = urllib.request.Request(
                url,
                headers={"User-Agent": self.user_agent, **(headers or {})},
            )
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                return Err(HttpError(url=url, status=0, message="Request timed out", timed_out=True))
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out", timed_out=True))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Result[StrDict, HttpError]:
        result = self.get_bytes(url, headers)
        if isinstance(result, Err):
            return result

        try:
            data_obj: object = json.loads(result.value.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(HttpError(url=url, status=0, message="Expected JSON object"))
        return Ok(data)


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_json("https://registry/index.json", {"resources": []})
    """

    def __init__(self) -> None:
        self._json_responses: dict[str, StrDict | HttpError] = {}
        self._bytes_responses: dict[str, bytes | HttpError] = {}
        self.calls: list[tuple[str, str, dict[str, str]]] = []

    def set_json(self, url: str, response: StrDict | HttpError) -> None:
        self._json_responses[url] = response

    def set_bytes(self, url: str, response: bytes | HttpError) -> None:
        self._bytes_responses[url] = response

    def get_json(self, url: str, headers: dict[str, str] | None = None) -> Result[StrDict, HttpError]:
        self.calls.append(("get_json", url, dict(headers or {})))
        response = self._json_responses.get(url)
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def get_bytes(self, url: str, headers: dict[str, str] | None = None) -> Result[bytes, HttpError]:
        self.calls.append(("get_bytes", url, dict(headers or {})))
        response = self._bytes_responses.get(url)
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
