# kwacha_gateway/collaborators.py
"""
Route collaborators: the handler groups the gateway dispatches to but does not own.

Each group is a plain ``fastapi.APIRouter`` whose paths are relative to its
prefix. ``authenticate`` is an async FastAPI dependency used as the gate in
front of the users group; it rejects by raising ``HTTPException(401)``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict

from fastapi import APIRouter, HTTPException, Request

AuthGate = Callable[[Request], Awaitable[None]]

GROUPS = ("auth", "chat", "news", "countries", "users", "analytics")


async def require_bearer_token(request: Request) -> None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.token = token.strip()


@dataclass
class Collaborators:
    auth: APIRouter = field(default_factory=APIRouter)
    chat: APIRouter = field(default_factory=APIRouter)
    news: APIRouter = field(default_factory=APIRouter)
    countries: APIRouter = field(default_factory=APIRouter)
    users: APIRouter = field(default_factory=APIRouter)
    analytics: APIRouter = field(default_factory=APIRouter)
    authenticate: AuthGate = require_bearer_token

    def groups(self) -> Dict[str, APIRouter]:
        return {name: getattr(self, name) for name in GROUPS}
