# werver

werver is a small HTTP/1.1 server that runs on a pool of worker threads. It
matches each request to a route by the first segment of its path. The
remaining segments are passed to that route's handler. A handler answers with
an HTML template file, and the server fills in the file's `{name}` markers
before it sends the page.

The package also includes a parser and roller for dice expressions such as
`3d6` or `4d6kh3`.

## Installing

```
pip install .
```

## Modules

- `werver.http_server`: `HttpServer`, `Route`, `Page`, `ErrorPage`,
  `Response`, `NotFoundResponse`, `ErrorResponse`, `HttpStatus`,
  `RequestType`, and the errors `ConnectionHandlingError`, `ConnectionIOError`,
  `MalformedRequestError`, `RouteParseError`, `NonexistentRouteError` and
  `QueryError`.
- `werver.thread_pool`: `ThreadPool`, a fixed-size pool of worker threads.
- `werver.dice_roll`: `DiceRoll`, `DiceType`, `KeepMode` and
  `ParseDiceRollError`.

## Routes

A `Route` holds three things:

- a `RequestType` (only `GET` exists);
- a list of prefixes, each a single path segment such as `"/random"` or `"/"`;
- a query handler.

The query handler gets the path segments that follow the prefix, as a list of
strings, and returns a `Response`. To refuse a request, the handler raises
`QueryError`. The server then raises `RouteParseError` with the same message.

```python
from werver.http_server import (
    HttpStatus, Page, QueryError, RequestType, Response, Route,
)

def random_page(args: list[str]) -> Response:
    if len(args) != 2:
        raise QueryError(f"expected 2 arguments, got {len(args)}")
    low, high = args
    return Response(
        HttpStatus.OK,
        Page("pages/random.html", {"low": low, "high": high}),
    )

random_route = Route(RequestType.GET, ["/random"], random_page)
```

A request for `/random/1/6` calls `random_page(["1", "6"])`. A request for
`/` matches the prefix `"/"` with an empty list of arguments.

## Running a server

```python
from werver.http_server import (
    ErrorPage, ErrorResponse, HttpServer, NotFoundResponse, Page,
)

server = HttpServer(
    lambda: NotFoundResponse(Page("pages/404.html")),
    lambda err: ErrorResponse(ErrorPage("pages/error.html", str(err))),
)
server.add_route(random_route)
server.listen("127.0.0.1:7878", 4)
```

`listen` binds to `host:port` and accepts connections forever. Each
connection is handed to a `ThreadPool`. A request that matches no route is
answered with the not-found handler's page. Both the not-found page and the
error page are sent with status `200 OK`.

A connection can fail because the request is malformed, the handler raised
`QueryError`, or a page could not be read. The error handler turns the failure
into an `ErrorResponse`, whose page gets the error message as its `{error}`
value. That page is then sent in answer to a later connection. It is not sent
if the same error was also reported just before it.

`HttpServer.handle_connection(stream, override=None)` serves a single request
from any binary stream that has `readline`, `write` and `flush`. This makes it
possible to use without a socket.

## Thread pool

```python
from werver.thread_pool import ThreadPool

with ThreadPool(4, lambda exc: str(exc)) as pool:
    pending = pool.execute(lambda: do_work())
```

`execute` queues the job. It returns one result of the error handler from an
earlier failed job, or `None` if there is none. `shutdown` (which leaving the
`with` block also calls) lets the queued jobs finish and joins the workers.

## Dice

```python
from werver.dice_roll import DiceRoll

dice = DiceRoll.parse("4d6kh3")
dice.to_english()   # "4 d6, keeping highest 3 rolls"
dice.roll()         # total of the three highest of four d6 rolls
```

The accepted dice are d4, d6, d8, d10, d12, d20 and d100. If the count is left
out, as in `d20`, it is 1. The suffix `kh<n>` keeps the highest `n` rolls and
`kl<n>` keeps the lowest `n`. `roll` takes an optional `random.Random`, so
results can be reproduced. An expression that cannot be parsed raises
`ParseDiceRollError`.

## What is not included

The package has no command-line program and no ready-made application. To
serve pages, you build the routes and the `HttpServer` yourself, as shown
above. Route handlers convert their own string arguments; nothing turns
annotated function parameters into route arguments for you.

## Running the tests

```
pip install ".[test]"
pytest
```