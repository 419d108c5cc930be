"""A small HTTP/1.1 server that maps route prefixes to page templates."""

from __future__ import annotations

import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, Sequence, TypeVar

from werver.thread_pool import ThreadPool

T = TypeVar("T")

HtmlArgs = dict[str, str]


class ConnectionHandlingError(Exception):
    """Raised when a connection could not be served."""


class ConnectionIOError(ConnectionHandlingError):
    """Reading from or writing to the connection, or reading a page, failed."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause


class MalformedRequestError(ConnectionHandlingError):
    """The incoming request could not be understood."""


class RouteParseError(ConnectionHandlingError):
    """A route's query handler rejected the request."""


class NonexistentRouteError(ConnectionHandlingError):
    """No route exists for the requested path."""

    def __init__(self, route: str) -> None:
        super().__init__(f"Nonexistent route: `{route}`")
        self.route = route


class QueryError(Exception):
    """Raised by a query handler to refuse a request with a message."""


@dataclass
class Page:
    """A template file and the values substituted for its ``{name}`` markers."""

    page: str
    args: HtmlArgs | None = None


@dataclass(frozen=True)
class ErrorPage:
    """A template file shown with an error message as its ``{error}`` value."""

    page: str
    args: str

    def to_page(self) -> Page:
        return Page(self.page, {"error": self.args})


class HttpStatus(Enum):
    OK = 200
    NOT_FOUND = 404

    def __str__(self) -> str:
        if self is HttpStatus.OK:
            return "HTTP/1.1 200 OK"
        return "HTTP/1.1 404 NOT FOUND"


@dataclass
class Response:
    status_line: HttpStatus
    page: Page


@dataclass
class NotFoundResponse:
    page: Page

    def to_response(self) -> Response:
        return Response(HttpStatus.OK, self.page)


@dataclass(frozen=True)
class ErrorResponse:
    page: ErrorPage

    def to_response(self) -> Response:
        return Response(HttpStatus.OK, self.page.to_page())


class RequestType(Enum):
    GET = "GET"


def parse_request_type(text: str) -> RequestType:
    """Parse a request method, ignoring case; raise ValueError if unknown."""
    try:
        return RequestType(text.upper())
    except ValueError:
        raise ValueError(f"invalid request type: {text}") from None


QueryHandler = Callable[[list[str]], Response]


@dataclass
class Route:
    """Prefixes served by one query handler for one request type."""

    request_type: RequestType
    prefixes: Sequence[str]
    query_handler: QueryHandler = field(repr=False)


NotFoundHandler = Callable[[], NotFoundResponse]
ErrorHandler = Callable[[ConnectionHandlingError], ErrorResponse]


class _Stream(Protocol):
    def readline(self) -> bytes: ...

    def write(self, data: bytes) -> Any: ...

    def flush(self) -> Any: ...


def matches_prefix(route: str, prefix: str) -> str | None:
    """Return what follows the first path segment of ``route`` if that segment is ``prefix``."""
    first = route.find("/")
    second = route.find("/", first + 1) if first != -1 else -1
    if second == -1:
        head, rest = route, ""
    else:
        head, rest = route[:second], route[second:]
    return rest if head == prefix else None


def last_two(items: Sequence[T]) -> tuple[T | None, T | None]:
    """Return the last item and the one before it, None where missing."""
    last = items[-1] if len(items) >= 1 else None
    before = items[-2] if len(items) >= 2 else None
    return last, before


def _read_request_lines(stream: _Stream) -> list[str]:
    lines = []
    while True:
        try:
            raw = stream.readline()
        except OSError as exc:
            raise ConnectionIOError(exc) from exc
        if not raw:
            break
        if raw.endswith(b"\n"):
            raw = raw[:-1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ConnectionIOError(exc) from exc
        if not line:
            break
        lines.append(line)
    return lines


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid address: {address}")
    return host, int(port)


class HttpServer:
    """Serves registered routes, falling back to a not-found page."""

    def __init__(
        self, not_found_handler: NotFoundHandler, error_handler: ErrorHandler
    ) -> None:
        self.routes: list[Route] = []
        self.not_found_handler = not_found_handler
        self.error_handler = error_handler

    def add_route(self, route: Route) -> None:
        self.routes.append(route)

    def _find_route(
        self, request_type: RequestType, path: str
    ) -> tuple[str, QueryHandler] | None:
        for route in self.routes:
            if route.request_type != request_type:
                continue
            for prefix in route.prefixes:
                rest = matches_prefix(path, prefix)
                if rest is not None:
                    return rest, route.query_handler
        return None

    def handle_connection(self, stream: _Stream, override: Response | None = None) -> None:
        """Read one request from ``stream`` and write the response to it.

        ``stream`` is a binary stream with ``readline``, ``write`` and ``flush``.
        If ``override`` is given it is sent instead of the routed response.
        """
        lines = _read_request_lines(stream)
        if not lines:
            raise MalformedRequestError("Empty incoming TCP stream")
        tokens = lines[0].split(" ")
        if len(tokens) != 3:
            raise MalformedRequestError("Malformed request line")
        method, path, _protocol = tokens
        try:
            request_type = parse_request_type(method)
        except ValueError:
            raise MalformedRequestError(f"Unknown request type: {method}") from None

        if override is not None:
            response = override
        else:
            found = self._find_route(request_type, path)
            if found is None:
                response = self.not_found_handler().to_response()
            else:
                rest, query_handler = found
                try:
                    response = query_handler(rest.split("/")[1:])
                except QueryError as exc:
                    raise RouteParseError(str(exc)) from exc

        try:
            with open(response.page.page, encoding="utf-8") as page_file:
                contents = page_file.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise ConnectionIOError(exc) from exc
        for key, value in (response.page.args or {}).items():
            contents = contents.replace(f"{{{key}}}", value)

        body = contents.encode("utf-8")
        head = f"{response.status_line}\r\nContent-Length: {len(body)}\r\n\r\n"
        try:
            stream.write(head.encode("utf-8") + body)
            stream.flush()
        except OSError as exc:
            raise ConnectionIOError(exc) from exc

    def _serve_socket(self, conn: socket.socket, override: Response | None) -> None:
        with conn, conn.makefile("rwb") as stream:
            self.handle_connection(stream, override)

    def listen(self, address: str, num_threads: int) -> None:
        """Accept connections on ``host:port`` forever, serving them on a thread pool.

        After a failed connection, the next connection is answered with that
        error's page, unless the same error was also reported just before it.
        """
        host, port = _parse_address(address)
        with socket.create_server((host, port)) as listener, ThreadPool(
            num_threads, self._handle_error
        ) as pool:
            errors: list[ErrorResponse] = []
            while True:
                conn, _ = listener.accept()
                last, before = last_two(errors)
                override = None
                if last is not None and (before is None or last != before):
                    override = last.to_response()
                handled = pool.execute(
                    lambda c=conn, o=override: self._serve_socket(c, o)
                )
                if handled is not None:
                    errors.append(handled)
                else:
                    errors = []

    def _handle_error(self, exc: Exception) -> ErrorResponse:
        if not isinstance(exc, ConnectionHandlingError):
            exc = ConnectionIOError(exc)
        return self.error_handler(exc)