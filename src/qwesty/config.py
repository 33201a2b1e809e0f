"""Configuration loading and validation."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

LOCALES = (
    "en-GB", "en-US", "da-DK", "de-DE", "nl-NL", "no-NO", "fi-FI", "sv-SE", "fr-FR", "it-IT",
    "es-ES", "es-419", "pt-BR", "hr-HR", "hu-HU", "lt-LT", "pl-PL", "ro-RO", "cs-CZ", "tr-TR",
    "el-GR", "bg-BG", "ru-RU", "uk-UA", "vi-VN", "hi-IN", "th-TH", "zh-CN", "zh-TW", "ja-JP",
    "ko-KR",
)

VALID_ROLES = frozenset({"standalone", "agent", "collector"})
VALID_REWARD_FILTERS = frozenset({"all", "orbs", "decor"})
VALID_STORAGE_TYPES = frozenset({"json", "memory", "sqlite"})

DEFAULT_SUPER_PROPERTIES = (
    "eyJvcyI6IldpbmRvd3MiLCJicm93c2VyIjoiRGlzY29yZCBDbGllbnQiLCJyZWxlYXNlX2NoYW5uZWwiOiJzdGFibGUi"
    "LCJjbGllbnRfdmVyc2lvbiI6IjEuMC45MTc1Iiwib3NfdmVyc2lvbiI6IjEwLjAuMjYxMDAiLCJvc19hcmNoIjoieDY0"
    "Iiwic3lzdGVtX2xvY2FsZSI6ImVuLVVTIn0="
)


@dataclass(frozen=True)
class Sink:
    """An outbound webhook target."""

    url: str
    name: str | None = None

    @property
    def label(self) -> str:
        return self.name or "default"


@dataclass(frozen=True)
class Config:
    """Application configuration. All values sourced from environment variables."""

    # Required
    quest_api_token: str

    # Optional — Role
    role: str = "standalone"

    # Optional — Upstream
    quest_api_base_url: str = "https://discord.com/api/v10"
    super_properties: str = DEFAULT_SUPER_PROPERTIES
    region: str = "en-US"
    http_timeout_seconds: float = 30.0

    # Optional — Pipeline
    reward_filter: str = "all"
    fetch_interval_minutes: int = 30
    run_once: bool = False
    initial_send_all: bool = False
    locale_delay_min_seconds: float = 60.0
    locale_delay_max_seconds: float = 70.0

    # Optional — Storage
    storage_type: str = "json"
    storage_path: str = "./known-quests.json"

    # Optional — Notification
    sinks: tuple[Sink, ...] = field(default_factory=tuple)

    # Optional — Agent
    collector_url: str | None = None
    collector_token: str | None = None
    source_label: str = "agent"

    # Optional — Collector
    ingest_token: str | None = None
    ingest_host: str = "0.0.0.0"
    ingest_port: int = 8080

    # Optional — Application
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def is_agent(self) -> bool:
        return self.role == "agent"

    @property
    def is_collector(self) -> bool:
        return self.role == "collector"

    @property
    def all_locales(self) -> bool:
        return self.region == "all"

    def regions(self) -> list[str]:
        """Locales polled on each tick. Agents always poll a single locale."""
        if self.all_locales and not self.is_agent:
            return list(LOCALES)
        if self.all_locales:
            return ["en-US"]
        return [self.region]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_sinks(raw: str) -> tuple[Sink, ...]:
    """Parse the WEBHOOKS variable.

    Accepts either a JSON list of ``{"name": ..., "url": ...}`` objects or a
    comma-separated list of bare URLs. Raises ValueError on malformed input.
    """
    raw = raw.strip()
    if not raw:
        return ()
    if raw.startswith("["):
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"WEBHOOKS is not valid JSON: {exc}") from exc
        sinks: list[Sink] = []
        for entry in entries:
            if isinstance(entry, str):
                sinks.append(Sink(url=entry))
            elif isinstance(entry, dict) and entry.get("url"):
                sinks.append(Sink(url=entry["url"], name=entry.get("name")))
            else:
                raise ValueError(f"WEBHOOKS entry has no url: {entry!r}")
        return tuple(sinks)
    return tuple(Sink(url=url.strip()) for url in raw.split(",") if url.strip())


def _validate(config: Config) -> list[str]:
    errors: list[str] = []
    if config.role not in VALID_ROLES:
        errors.append(f"ROLE must be one of: {', '.join(sorted(VALID_ROLES))}")
    if config.reward_filter not in VALID_REWARD_FILTERS:
        errors.append(
            f"REWARD_FILTER must be one of: {', '.join(sorted(VALID_REWARD_FILTERS))}"
        )
    if config.storage_type not in VALID_STORAGE_TYPES:
        errors.append(
            f"STORAGE_TYPE must be one of: {', '.join(sorted(VALID_STORAGE_TYPES))}"
        )
    if config.locale_delay_min_seconds > config.locale_delay_max_seconds:
        errors.append("LOCALE_DELAY_MIN_SECONDS must not exceed LOCALE_DELAY_MAX_SECONDS")
    if config.fetch_interval_minutes < 1:
        errors.append("FETCH_INTERVAL_MINUTES must be at least 1")
    return errors


def load_config(env_path: str | Path | None = None) -> Config:
    """Load configuration from environment variables.

    Loads a .env file if present (for local development), then validates
    that all required variables for the configured role are set. Raises
    ValueError listing any missing or invalid variables.
    """
    load_dotenv(dotenv_path=env_path)

    role = os.environ.get("ROLE", "standalone").strip().lower()

    required = ["QUEST_API_TOKEN"]
    if role == "agent":
        required += ["COLLECTOR_URL", "COLLECTOR_TOKEN"]
    else:
        required.append("WEBHOOKS")
    if role == "collector":
        required.append("INGEST_TOKEN")

    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    config = Config(
        # Required
        quest_api_token=os.environ["QUEST_API_TOKEN"],
        # Optional — Role
        role=role,
        # Optional — Upstream
        quest_api_base_url=os.environ.get(
            "QUEST_API_BASE_URL", "https://discord.com/api/v10"
        ).rstrip("/"),
        super_properties=os.environ.get("SUPER_PROPERTIES") or DEFAULT_SUPER_PROPERTIES,
        region=os.environ.get("REGION", "en-US").strip(),
        http_timeout_seconds=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "30")),
        # Optional — Pipeline
        reward_filter=os.environ.get("REWARD_FILTER", "all").strip().lower(),
        fetch_interval_minutes=int(os.environ.get("FETCH_INTERVAL_MINUTES", "30")),
        run_once=_parse_bool(os.environ.get("RUN_ONCE", "false")),
        initial_send_all=_parse_bool(os.environ.get("INITIAL_SEND_ALL", "false")),
        locale_delay_min_seconds=float(os.environ.get("LOCALE_DELAY_MIN_SECONDS", "60")),
        locale_delay_max_seconds=float(os.environ.get("LOCALE_DELAY_MAX_SECONDS", "70")),
        # Optional — Storage
        storage_type=os.environ.get("STORAGE_TYPE", "json").strip().lower(),
        storage_path=os.environ.get("STORAGE_PATH", "./known-quests.json"),
        # Optional — Notification
        sinks=parse_sinks(os.environ.get("WEBHOOKS", "")),
        # Optional — Agent
        collector_url=os.environ.get("COLLECTOR_URL") or None,
        collector_token=os.environ.get("COLLECTOR_TOKEN") or None,
        source_label=os.environ.get("SOURCE_LABEL", "agent"),
        # Optional — Collector
        ingest_token=os.environ.get("INGEST_TOKEN") or None,
        ingest_host=os.environ.get("INGEST_HOST", "0.0.0.0"),
        ingest_port=int(os.environ.get("INGEST_PORT", "8080")),
        # Optional — Application
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_format=os.environ.get("LOG_FORMAT", "json"),
    )

    errors = _validate(config)
    if not config.is_agent and not config.sinks:
        errors.append("WEBHOOKS must list at least one webhook URL")
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config
