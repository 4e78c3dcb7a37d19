# kwacha_gateway/middleware_payload.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .errors import PayloadError, PayloadTooLarge

log = logging.getLogger("kwacha_gateway.payload")

JSON_TYPES = ("application/json",)
FORM_TYPE = "application/x-www-form-urlencoded"


def _media_type(headers: Headers) -> str:
    return headers.get("content-type", "").split(";", 1)[0].strip().lower()


def _is_json(media_type: str) -> bool:
    return media_type in JSON_TYPES or media_type.endswith("+json")


def decode_form(body: bytes) -> Dict[str, Union[str, List[str]]]:
    """Form decoding that keeps repeated keys as lists."""
    try:
        pairs = parse_qs(body.decode("utf-8"), keep_blank_values=True, strict_parsing=True)
    except (UnicodeDecodeError, ValueError) as exc:
        raise PayloadError("Malformed form body") from exc
    return {k: v[0] if len(v) == 1 else v for k, v in pairs.items()}


def decode_body(media_type: str, body: bytes) -> Optional[Any]:
    if not body:
        return None
    if _is_json(media_type):
        try:
            return json.loads(body)
        except (UnicodeDecodeError, ValueError) as exc:
            raise PayloadError("Malformed JSON body") from exc
    if media_type == FORM_TYPE:
        return decode_form(body)
    return None


class BodyLimitMiddleware:
    """Caps the request body and decodes JSON/form payloads before routing.

    The buffered body is replayed to the downstream app, and is also exposed as
    request.state.raw_body / request.state.parsed_body.
    """

    def __init__(self, app: ASGIApp, *, limit_bytes: int) -> None:
        self.app = app
        self.limit = limit_bytes

    async def _reject(self, exc: PayloadError, scope: Scope, receive: Receive, send: Send) -> None:
        log.info("payload rejected code=%s path=%s: %s", exc.code, scope.get("path"), exc.message)
        await exc.to_response()(scope, receive, send)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        too_large = PayloadTooLarge(f"Request body exceeds {self.limit} bytes",
                                    details={"limit": self.limit})

        declared = headers.get("content-length")
        if declared is not None:
            try:
                declared_length = int(declared)
            except ValueError:
                await self._reject(PayloadError("Invalid Content-Length header"), scope, receive, send)
                return
            if declared_length > self.limit:
                await self._reject(too_large, scope, receive, send)
                return

        body = bytearray()
        tail: List[Message] = []
        while True:
            message = await receive()
            if message["type"] != "http.request":
                # client went away mid-body; hand the disconnect downstream
                tail.append(message)
                break
            body.extend(message.get("body", b""))
            if len(body) > self.limit:
                await self._reject(too_large, scope, receive, send)
                return
            if not message.get("more_body", False):
                break

        body_bytes = bytes(body)
        try:
            parsed = decode_body(_media_type(headers), body_bytes)
        except PayloadError as exc:
            await self._reject(exc, scope, receive, send)
            return

        state = scope.setdefault("state", {})
        state["raw_body"] = body_bytes
        state["parsed_body"] = parsed

        replay: List[Message] = [{"type": "http.request", "body": body_bytes, "more_body": False}] + tail
        index = 0

        async def replay_receive() -> Message:
            nonlocal index
            if index < len(replay):
                message = replay[index]
                index += 1
                return message
            return await receive()

        await self.app(scope, replay_receive, send)
