"""Record types exchanged between the correlation engine and the collector."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

FRAGMENT_FIELDS = ("url", "method", "headers", "cookies", "body")


class IncompleteRecordError(ValueError):
    """Raised when a pending record is finalised with fields still missing."""


class MalformedPayloadError(ValueError):
    """Raised when a single-shot player payload cannot be used."""


@dataclass
class PendingRecord:
    """Fragments gathered so far for one request id.

    ``None`` means "not observed yet". An empty string is a real value, which
    matters for ``body``: an empty request body still counts as received.
    """

    url: Optional[str] = None
    method: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    cookies: Optional[str] = None
    body: Optional[str] = None
    created_at: float = field(default_factory=time.monotonic, compare=False)

    def missing(self) -> list[str]:
        return [name for name in FRAGMENT_FIELDS if getattr(self, name) is None]

    def snapshot(self) -> "PendingRecord":
        headers = dict(self.headers) if self.headers is not None else None
        return replace(self, headers=headers)

    def complete(self) -> "CompletedRecord":
        missing = self.missing()
        if missing:
            raise IncompleteRecordError(f"missing fields: {', '.join(missing)}")
        return CompletedRecord(
            url=self.url,
            method=self.method,
            headers=dict(self.headers),
            cookies=self.cookies,
            body=self.body,
        )


class CompletedRecord(BaseModel):
    """Wire shape posted to the collector's capture endpoint."""

    model_config = ConfigDict(frozen=True)

    url: str
    method: str
    headers: Dict[str, str]
    cookies: str
    body: str


class StartNotification(BaseModel):
    """Wire shape posted to the collector's start endpoint."""

    model_config = ConfigDict(frozen=True)

    trackId: str


class PlayerRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    videoId: str

    @field_validator("videoId")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("videoId must not be empty")
        return value


def parse_player_payload(raw: bytes | str | None) -> StartNotification:
    """Turn a raw player request body into a start notification."""

    if raw is None:
        raise MalformedPayloadError("player request carried no body")
    try:
        request = PlayerRequest.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedPayloadError(str(exc)) from exc
    return StartNotification(trackId=request.videoId)

