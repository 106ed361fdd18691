"""Maps transport and protocol failures onto user-facing messages.

HTTP status classification always wins over the response body: 401,
404 and 429 produce fixed messages whatever the server sent.  Other
statuses use the ``{"error": {"message": ...}}`` body when there is
one.  Exceptions are classified by walking their cause chain, because
``httpx`` and ``openai`` wrap the OS-level error that actually says
what went wrong.
"""

from __future__ import annotations

import json
import socket
import ssl
from collections.abc import Iterator

import httpx
import openai

AUTH_FAILED = "Authentication failed. Please check your API key."
NOT_FOUND = "Model not found or invalid endpoint."
MODELS_NOT_FOUND = "Models endpoint not found."
RATE_LIMITED = "Rate limit exceeded. Please try again later."

TIMEOUT = "Connection timed out. Please check your internet connection and try again."
DNS_FAILURE = "Cannot resolve server address. Please check your Base URL and internet connection."
TLS_HANDSHAKE_FAILURE = (
    "SSL/TLS handshake failed. The server's certificate may be invalid or untrusted."
)
CONNECTION_REFUSED = "Connection refused. Please verify the server address and port."

NO_TOOL_CALLS = "Received tool_calls finish but no tool calls were accumulated"
INCOMPLETE_TOOL_CALLS = "One or more tool calls in the stream were incomplete"


class StreamChatError(Exception):
    """Base exception for errors raised inside streamchat."""


class SearchError(StreamChatError):
    """A search adapter could not produce results."""


def extract_error_message(body: str | bytes | dict | None) -> str | None:
    """Pull ``error.message`` out of an OpenAI-style error body."""
    if body is None:
        return None
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
    if not isinstance(body, dict):
        return None
    error = body.get("error", body)
    if isinstance(error, dict):
        message = error.get("message")
    else:
        message = error
    if isinstance(message, str) and message.strip():
        return message
    return None


def describe_status(
    status_code: int,
    body: str | bytes | dict | None = None,
    not_found_message: str = NOT_FOUND,
) -> str:
    if status_code == 401:
        return AUTH_FAILED
    if status_code == 404:
        return not_found_message
    if status_code == 429:
        return RATE_LIMITED
    return extract_error_message(body) or f"API error: {status_code}"


def _cause_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _detail(exc: BaseException) -> str:
    return str(exc).strip()


def describe_exception(exc: BaseException) -> str:
    chain = list(_cause_chain(exc))

    def find(kinds):
        return next((e for e in chain if isinstance(e, kinds)), None)

    if find((httpx.TimeoutException, openai.APITimeoutError, TimeoutError, socket.timeout)):
        return TIMEOUT
    if find(socket.gaierror):
        return DNS_FAILURE
    if find(ssl.SSLCertVerificationError):
        return TLS_HANDSHAKE_FAILURE
    tls_error = find(ssl.SSLError)
    if tls_error is not None:
        return f"SSL/TLS error: {_detail(tls_error) or 'Secure connection failed'}"
    if find(ConnectionRefusedError):
        return CONNECTION_REFUSED
    io_error = find((httpx.TransportError, openai.APIConnectionError, OSError))
    if io_error is not None:
        return f"Network error: {_detail(io_error) or 'Connection failed'}"

    detail = _detail(exc)
    if detail:
        return f"Error: {detail}"
    return f"Unexpected error ({type(exc).__name__}). Please try again."
