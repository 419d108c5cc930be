import io

import pytest

from werver.http_server import (
    ConnectionIOError,
    ErrorPage,
    ErrorResponse,
    HttpServer,
    HttpStatus,
    MalformedRequestError,
    NonexistentRouteError,
    NotFoundResponse,
    Page,
    QueryError,
    RequestType,
    Response,
    Route,
    RouteParseError,
    last_two,
    matches_prefix,
    parse_request_type,
)


class FakeStream:
    def __init__(self, request: bytes):
        self.incoming = io.BytesIO(request)
        self.outgoing = io.BytesIO()
        self.flushed = False

    def readline(self):
        return self.incoming.readline()

    def write(self, data):
        return self.outgoing.write(data)

    def flush(self):
        self.flushed = True


def split_response(raw: bytes):
    head, _, body = raw.partition(b"\r\n\r\n")
    return head.decode().split("\r\n"), body


@pytest.fixture
def pages(tmp_path):
    (tmp_path / "home.html").write_text("<p>home</p>", encoding="utf-8")
    (tmp_path / "404.html").write_text("<p>missing</p>", encoding="utf-8")
    (tmp_path / "greet.html").write_text("<p>hi {name}, {name}!</p>", encoding="utf-8")
    (tmp_path / "error.html").write_text("<p>{error}</p>", encoding="utf-8")
    return tmp_path


@pytest.fixture
def server(pages):
    srv = HttpServer(
        lambda: NotFoundResponse(Page(str(pages / "404.html"))),
        lambda e: ErrorResponse(ErrorPage(str(pages / "error.html"), str(e))),
    )

    def home(args):
        return Response(HttpStatus.OK, Page(str(pages / "home.html")))

    def greet(args):
        if len(args) != 1:
            raise QueryError("bad args")
        return Response(HttpStatus.OK, Page(str(pages / "greet.html"), {"name": args[0]}))

    srv.add_route(Route(RequestType.GET, ["/", "/home"], home))
    srv.add_route(Route(RequestType.GET, ["/greet"], greet))
    return srv


@pytest.mark.parametrize(
    "route, prefix, expected",
    [
        ("/roll/2d6", "/roll", "/2d6"),
        ("/", "/", ""),
        ("/meow", "/", None),
        ("/random/1/6", "/random", "/1/6"),
        ("/roll/2d6", "/rol", None),
    ],
)
def test_matches_prefix(route, prefix, expected):
    assert matches_prefix(route, prefix) == expected


def test_last_two():
    assert last_two([]) == (None, None)
    assert last_two(["a"]) == ("a", None)
    assert last_two(["a", "b", "c"]) == ("c", "b")


def test_status_lines():
    assert str(HttpStatus(200)) == "HTTP/1.1 200 OK"
    assert str(HttpStatus(404)) == "HTTP/1.1 404 NOT FOUND"
    assert HttpStatus(404) is HttpStatus.NOT_FOUND


def test_parse_request_type():
    assert parse_request_type("get") is RequestType.GET
    with pytest.raises(ValueError):
        parse_request_type("POST")


def test_error_page_conversions():
    page = ErrorPage("err.html", "oops")
    assert page.to_page() == Page("err.html", {"error": "oops"})
    resp = ErrorResponse(page).to_response()
    assert resp.status_line is HttpStatus.OK
    assert resp.page.args == {"error": "oops"}


def test_not_found_response_uses_ok_status():
    resp = NotFoundResponse(Page("x.html")).to_response()
    assert resp == Response(HttpStatus.OK, Page("x.html"))


def test_nonexistent_route_message():
    assert str(NonexistentRouteError("/x")) == "Nonexistent route: `/x`"


def test_serves_root(server):
    stream = FakeStream(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
    server.handle_connection(stream)
    head, body = split_response(stream.outgoing.getvalue())
    assert head[0] == "HTTP/1.1 200 OK"
    assert body == b"<p>home</p>"
    assert head[1] == f"Content-Length: {len(body)}"
    assert stream.flushed


def test_substitutes_arguments(server):
    stream = FakeStream("GET /greet/wörld HTTP/1.1\r\n\r\n".encode())
    server.handle_connection(stream)
    head, body = split_response(stream.outgoing.getvalue())
    assert body.decode() == "<p>hi wörld, wörld!</p>"
    assert head[1] == f"Content-Length: {len(body)}"


def test_unknown_path_uses_not_found_page(server):
    stream = FakeStream(b"GET /nowhere HTTP/1.1\r\n\r\n")
    server.handle_connection(stream)
    _, body = split_response(stream.outgoing.getvalue())
    assert body == b"<p>missing</p>"


def test_override_replaces_routing(server, pages):
    stream = FakeStream(b"GET / HTTP/1.1\r\n\r\n")
    override = ErrorResponse(ErrorPage(str(pages / "error.html"), "earlier")).to_response()
    server.handle_connection(stream, override)
    _, body = split_response(stream.outgoing.getvalue())
    assert body == b"<p>earlier</p>"


def test_empty_stream_is_malformed(server):
    with pytest.raises(MalformedRequestError, match="Empty incoming TCP stream"):
        server.handle_connection(FakeStream(b""))


def test_bad_request_line_is_malformed(server):
    with pytest.raises(MalformedRequestError, match="Malformed request line"):
        server.handle_connection(FakeStream(b"GET /\r\n\r\n"))


def test_unknown_method_is_malformed(server):
    with pytest.raises(MalformedRequestError, match="Unknown request type: POST"):
        server.handle_connection(FakeStream(b"POST / HTTP/1.1\r\n\r\n"))


def test_query_error_becomes_route_parse_error(server):
    stream = FakeStream(b"GET /greet HTTP/1.1\r\n\r\n")
    with pytest.raises(RouteParseError, match="bad args"):
        server.handle_connection(stream)
    assert stream.outgoing.getvalue() == b""


def test_missing_page_file_is_io_error(tmp_path):
    srv = HttpServer(
        lambda: NotFoundResponse(Page(str(tmp_path / "absent.html"))),
        lambda e: ErrorResponse(ErrorPage("e.html", str(e))),
    )
    with pytest.raises(ConnectionIOError):
        srv.handle_connection(FakeStream(b"GET / HTTP/1.1\r\n\r\n"))


def test_first_matching_route_wins(pages):
    calls = []

    def first(args):
        calls.append(("first", args))
        return Response(HttpStatus.OK, Page(str(pages / "home.html")))

    def second(args):
        calls.append(("second", args))
        return Response(HttpStatus.OK, Page(str(pages / "404.html")))

    srv = HttpServer(lambda: NotFoundResponse(Page("x")), lambda e: None)
    srv.add_route(Route(RequestType.GET, ["/a"], first))
    srv.add_route(Route(RequestType.GET, ["/a"], second))
    stream = FakeStream(b"GET /a/x/y HTTP/1.1\r\n\r\n")
    srv.handle_connection(stream)
    _, body = split_response(stream.outgoing.getvalue())
    assert body == b"<p>home</p>"
    assert calls == [("first", ["x", "y"])]