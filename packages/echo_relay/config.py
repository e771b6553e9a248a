"""Runtime settings for echo_relay.

Values come from ``ECHO_RELAY_*`` environment variables, optionally loaded
from a ``.env`` file at the project root.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "ECHO_RELAY_"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    collector_url: str = "http://localhost:50999"
    capture_path: str = "/capture"
    start_path: str = "/capturestart"

    media_url_pattern: str = "*://*.googlevideo.com/*"
    player_url_pattern: str = "*://music.youtube.com/youtubei/v1/player*"
    skip_param: str = "itag"
    skip_value: str = "243"

    heartbeat_bootstrap_ms: int = Field(default=300, gt=0)
    heartbeat_steady_ms: int = Field(default=25_000, gt=0)
    heartbeat_escalation_delay_ms: int = Field(default=100, ge=0)
    liveness_channel: str = "EchoDaemon_Internal_alive_test"

    send_timeout: float = Field(default=10.0, gt=0)
    pending_ttl_seconds: float = Field(default=0.0, ge=0)
    debug: bool = False

    @property
    def capture_endpoint(self) -> str:
        return _join(self.collector_url, self.capture_path)

    @property
    def start_endpoint(self) -> str:
        return _join(self.collector_url, self.start_path)


def _join(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build :class:`Settings` from the environment.

    Unset variables keep the model defaults; malformed ones raise
    ``pydantic.ValidationError``.
    """

    env_path = env_file or Path(__file__).resolve().parents[2] / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()

    values = {}
    for name in Settings.model_fields:
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None and raw.strip() != "":
            values[name] = raw.strip()
    return Settings.model_validate(values)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
