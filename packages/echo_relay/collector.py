"""Local collector that receives forwarded captures and start notifications."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .errors import bad_request
from .records import CompletedRecord, StartNotification

logger = logging.getLogger(__name__)


class AckResponse(BaseModel):
    state: str = "ACK"


@dataclass
class CaptureInbox:
    captures: List[CompletedRecord] = field(default_factory=list)
    starts: List[StartNotification] = field(default_factory=list)
    events: asyncio.Queue = field(default_factory=asyncio.Queue)

    def add_capture(self, record: CompletedRecord) -> None:
        self.captures.append(record)
        self.events.put_nowait(("capture", record))

    def add_start(self, notification: StartNotification) -> None:
        self.starts.append(notification)
        self.events.put_nowait(("start", notification))


_INVALID = object()


async def _read_json(request: Request):
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _INVALID


async def capture(request: Request) -> JSONResponse:
    data = await _read_json(request)
    if data is _INVALID:
        return bad_request("invalid JSON in request body")
    try:
        record = CompletedRecord.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rejected capture: {e}")
        return bad_request(str(e))

    request.app.state.inbox.add_capture(record)
    logger.info(f"Capture received: {record.method} {record.url}")
    return JSONResponse(AckResponse().model_dump(mode="json"))


async def capture_start(request: Request) -> JSONResponse:
    data = await _read_json(request)
    if data is _INVALID:
        return bad_request("invalid JSON in request body")
    try:
        notification = StartNotification.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rejected start notification: {e}")
        return bad_request(str(e))

    request.app.state.inbox.add_start(notification)
    logger.info(f"Capture started for track {notification.trackId}")
    return JSONResponse(AckResponse().model_dump(mode="json"))


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "healthy"})


routes = [
    Route("/capture", capture, methods=["POST"]),
    Route("/capturestart", capture_start, methods=["POST"]),
    Route("/health", health, methods=["GET"]),
]


def create_app(inbox: Optional[CaptureInbox] = None) -> Starlette:
    app = Starlette(routes=routes)
    app.state.inbox = inbox if inbox is not None else CaptureInbox()
    return app
