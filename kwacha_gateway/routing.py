# kwacha_gateway/routing.py
"""
Ordered route table, first match wins.

Starlette matches routes in registration order, so the order of ``route_table()``
is the dispatch order: gateway-owned endpoints, then the collaborator prefixes,
then the single-page-app fallback.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from fastapi import APIRouter, Depends, FastAPI, Request

from .collaborators import GROUPS, Collaborators
from .routes import docs, health, spa

log = logging.getLogger("kwacha_gateway.routing")

GATED_GROUPS = frozenset({"users"})


@dataclass(frozen=True)
class RouteEntry:
    name: str
    prefix: str
    router: APIRouter
    gated: bool = False


def route_table(collaborators: Collaborators) -> List[RouteEntry]:
    table = [
        RouteEntry("health", "", health.router),
        RouteEntry("docs", "", docs.router),
    ]
    groups = collaborators.groups()
    for name in GROUPS:
        table.append(RouteEntry(name, f"/api/{name}", groups[name], gated=name in GATED_GROUPS))
    table.append(RouteEntry("spa", "", spa.router))
    return table


async def _gated_fallthrough(request: Request):
    # authenticated but unmatched inside a gated prefix: same fallback as everything else
    return await spa.spa_fallback(request.url.path.lstrip("/"), request)


def _prefix_gate(prefix: str) -> APIRouter:
    """Catch-all for a gated prefix so the auth check covers paths the collaborator doesn't define."""
    gate = APIRouter()
    gate.add_api_route(prefix, _gated_fallthrough, methods=spa.ALL_METHODS, include_in_schema=False)
    gate.add_api_route(prefix + "/{rest:path}", _gated_fallthrough, methods=spa.ALL_METHODS,
                       include_in_schema=False)
    return gate


def mount_routes(app: FastAPI, table: List[RouteEntry], collaborators: Collaborators) -> None:
    for entry in table:
        if entry.gated:
            deps = [Depends(collaborators.authenticate)]
            app.include_router(entry.router, prefix=entry.prefix, dependencies=deps)
            app.include_router(_prefix_gate(entry.prefix), dependencies=deps)
        else:
            app.include_router(entry.router, prefix=entry.prefix)
        log.debug("mounted %s at %s%s", entry.name, entry.prefix or "/",
                  " (auth gated)" if entry.gated else "")
