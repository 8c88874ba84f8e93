"""Client configuration loader."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_BASE_URL = "https://api.quizbowl.game-manager.org"
BASE_URL_ENV = "QUIZBOWL_BASE_URL"


@dataclass
class PollingConfig:
    operator_interval_s: float = 1.2  # operator mutates this exact state
    viewer_interval_s: float = 5.0
    stream_enabled: bool = True


@dataclass
class TimerConfig:
    tick_interval_s: float = 1.0


@dataclass
class ClientConfig:
    base_url: str = DEFAULT_BASE_URL
    game_id: str = "default"
    timeout_s: float = 10.0
    credentials_path: Path = field(
        default_factory=lambda: Path.home() / ".config" / "quizbowl" / "credentials.json"
    )
    polling: PollingConfig = field(default_factory=PollingConfig)
    timer: TimerConfig = field(default_factory=TimerConfig)


def load_config(path: Path | None = None) -> ClientConfig:
    """Load client config from YAML file; defaults when ``path`` is None.

    ``QUIZBOWL_BASE_URL`` in the environment overrides the file's base_url.
    """
    raw: dict = {}
    if path is not None:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}

    client = raw.get("client", {})
    polling = raw.get("polling", {})
    timer = raw.get("timer", {})

    config = ClientConfig(
        base_url=client.get("base_url", DEFAULT_BASE_URL),
        game_id=str(client.get("game_id", "default")),
        timeout_s=client.get("timeout_s", 10.0),
        polling=PollingConfig(
            operator_interval_s=polling.get("operator_interval_s", 1.2),
            viewer_interval_s=polling.get("viewer_interval_s", 5.0),
            stream_enabled=polling.get("stream_enabled", True),
        ),
        timer=TimerConfig(
            tick_interval_s=timer.get("tick_interval_s", 1.0),
        ),
    )
    if client.get("credentials_path"):
        config.credentials_path = Path(client["credentials_path"]).expanduser()

    env_url = os.environ.get(BASE_URL_ENV)
    if env_url:
        config.base_url = env_url
    return config
