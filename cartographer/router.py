"""
Request routing — one handler per (method, path), central failure
classification, and status-code mapping.

Handlers raise HTTPError subclasses for client mistakes; anything else is an
internal failure. Only serve() turns failures into responses, always with an
empty body.

Depends on: nothing
"""

import sys
import traceback
from enum import Enum
from typing import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route


# =============================================================================
# Error Kinds
# =============================================================================

class ErrorKind(int, Enum):
    BAD_REQUEST = 400
    METHOD_NOT_ALLOWED = 405
    INTERNAL_FAILURE = 500


class HTTPError(Exception):
    kind = ErrorKind.INTERNAL_FAILURE


class BadRequest(HTTPError):
    """A required parameter is missing or malformed."""
    kind = ErrorKind.BAD_REQUEST


class MethodNotAllowed(HTTPError):
    kind = ErrorKind.METHOD_NOT_ALLOWED


def classify(exc: BaseException) -> ErrorKind:
    """Map any exception raised while handling a request to an ErrorKind."""
    if isinstance(exc, HTTPError):
        return exc.kind
    return ErrorKind.INTERNAL_FAILURE


def empty_response(status_code: int) -> Response:
    return Response(status_code=status_code, headers={"Connection": "close"})


# =============================================================================
# Routes
# =============================================================================

Handler = Callable[[Request], Awaitable[Response]]

# Routes are registered for all of these so that serve() makes the 405 decision
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "TRACE", "CONNECT"]


def serve(method: str, path: str, handler: Handler) -> Route:
    """Bind handler to path for exactly one HTTP method.

    Any other method gets an empty 405 with Connection: close and no Allow
    header.
    """
    async def endpoint(request: Request) -> Response:
        try:
            if request.method != method:
                raise MethodNotAllowed(f"{request.method} {request.url.path}")
            response = await handler(request)
        except Exception as e:
            kind = classify(e)
            if kind == ErrorKind.INTERNAL_FAILURE:
                print(
                    f"[Cartographer] Internal error handling {request.method} {request.url}:\n"
                    f"{traceback.format_exc()}",
                    file=sys.stderr,
                )
            return empty_response(kind.value)
        response.headers["Connection"] = "close"
        return response

    return Route(path, endpoint, methods=ALL_METHODS, name=f"{handler.__name__}:{path}")
