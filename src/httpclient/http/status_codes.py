"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

Status codes as seen from the CLIENT side of the exchange.

A client does not pick status codes, it interprets them. Two questions
matter here:

    1. What is the default reason phrase? (servers may send none)
    2. Can a response with this status carry a body at all?

    ┌────────┬──────────────────────────────────────────────────────────┐
    │  1xx   │ Interim. Never has a body. The real response follows.   │
    │  2xx   │ Success. 204 No Content has no body.                     │
    │  3xx   │ Redirect. 304 Not Modified has no body.                  │
    │  4xx   │ Client error. Still a normal response, with a body.     │
    │  5xx   │ Server error. Still a normal response, with a body.     │
    └────────┴──────────────────────────────────────────────────────────┘

Responses to HEAD never have a body, whatever the status says.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    Common HTTP status codes.

        >>> HTTPStatus(404).phrase
        'Not Found'
        >>> HTTPStatus.OK.is_success
        True
    """

    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101
    EARLY_HINTS = 103

    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204
    PARTIAL_CONTENT = 206

    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    GONE = 410
    LENGTH_REQUIRED = 411
    PAYLOAD_TOO_LARGE = 413
    UNSUPPORTED_MEDIA_TYPE = 415
    TOO_MANY_REQUESTS = 429

    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Default reason phrase, e.g. "Not Found"."""
        return _PHRASE_OVERRIDES.get(self, self.name.replace("_", " ").title())

    @property
    def is_informational(self) -> bool:
        return 100 <= self < 200

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self < 400

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600


# Phrases that title-casing the enum name gets wrong
_PHRASE_OVERRIDES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}


def reason_phrase(status_code: int) -> str:
    """Default reason phrase for any code; "" for codes we don't know."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def status_allows_body(status_code: int, method: str = "GET") -> bool:
    """
    Whether a response can carry a body.

    False for HEAD requests and for 1xx, 204 and 304 responses
    (RFC 7230 §3.3.3). Framing code must not wait for body bytes then.
    """
    if method.upper() == "HEAD":
        return False
    if 100 <= status_code < 200:
        return False
    return status_code not in (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)
