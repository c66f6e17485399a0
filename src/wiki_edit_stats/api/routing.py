"""URL generation from route names and parameter mappings.

Redirects produced by the request pipeline name a route and carry a flat
parameter mapping.  Parameters matching the route's path placeholders go
into the path; everything else becomes the query string.  The path itself
is built by the application's ``url_path_for``.
"""

from __future__ import annotations

import urllib.parse
from typing import Any, Iterable, Iterator, Mapping, Sequence

from fastapi import FastAPI
from starlette.convertors import PathConvertor
from starlette.routing import BaseRoute, NoMatchFound


def _iter_routes(routes: Sequence[BaseRoute]) -> Iterator[BaseRoute]:
    for route in routes:
        yield route
        nested = getattr(route, "routes", None)
        if nested is None:
            # Routers included by recent FastAPI releases keep their routes
            # on the router they wrap.
            nested = getattr(getattr(route, "original_router", None), "routes", None)
        if nested:
            yield from _iter_routes(nested)


def find_route(app: FastAPI, name: str) -> BaseRoute:
    """Return the route named *name*, searching included routers too.

    Raises:
        NoMatchFound: If no route has that name.
    """
    for route in _iter_routes(app.router.routes):
        if getattr(route, "name", None) == name and hasattr(route, "param_convertors"):
            return route
    raise NoMatchFound(name, {})


def build_url(
    app: FastAPI,
    name: str,
    params: Mapping[str, Any],
    extra_query: Iterable[tuple[str, str]] = (),
) -> str:
    """Return the relative URL of route *name* for *params*.

    Args:
        app: Application owning the route.
        name: Route name.
        params: Parameters; path placeholders are filled from here.
        extra_query: Additional (possibly repeated) query pairs appended last.

    Raises:
        NoMatchFound: If no route has that name, or a path parameter is missing.
    """
    route = find_route(app, name)
    path_values: dict[str, str] = {}
    for param, convertor in route.param_convertors.items():
        value = params.get(param)
        if value is None or value == "":
            raise NoMatchFound(name, dict(params))
        safe = "/" if isinstance(convertor, PathConvertor) else ""
        path_values[param] = urllib.parse.quote(str(value), safe=safe)

    path = str(app.url_path_for(name, **path_values))
    query = [(k, str(v)) for k, v in params.items() if k not in path_values and v is not None]
    query.extend(extra_query)
    if query:
        path = f"{path}?{urllib.parse.urlencode(query)}"
    return path
