"""
Load the feedcast configuration file (YAML or JSON) with `${ENV}` expansion,
validate it, and turn feed entries into read-only descriptors.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError

from feedcast.errors import ConfigError, PersistenceError
from feedcast.models import (
    Credential,
    FeedDescriptor,
    FeedType,
    SyndicationSource,
    VideoChannelSource,
)
from feedcast.schemas import AppConfig, SyndicationFeedConfig, VideoFeedConfig

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_MAX_RESULTS = 10


def load_app_config(config_path: Path) -> AppConfig:
    config_path = Path(config_path)
    if not config_path.exists():
        logger.warning("Config file %s doesn't exist, creating default config", config_path)
        default = AppConfig()
        _write_document(config_path, default.model_dump(mode="json"))
        return default

    data = _expand_env(read_config_document(config_path))
    try:
        config = AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc
    logger.info("Loaded configuration from: %s", config_path)
    return config


def read_config_document(config_path: Path) -> Dict[str, Any]:
    raw = Path(config_path).read_text(encoding="utf-8")
    try:
        if _is_json(config_path):
            data = json.loads(raw)
        else:
            data = yaml.safe_load(raw)
    except (ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to parse {config_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping at the top level")
    return data


def validate_config(config: AppConfig) -> None:
    if not config.feeds:
        raise ConfigError("No feeds configured")
    if not config.publishers:
        raise ConfigError("No publishers configured")

    seen = set()
    for feed in config.feeds:
        if feed.id in seen:
            raise ConfigError(f"Duplicate feed id '{feed.id}'")
        seen.add(feed.id)
        for publisher_id in feed.publishers:
            if publisher_id not in config.publishers:
                raise ConfigError(f"Feed '{feed.id}' references non-existent publisher '{publisher_id}'")
        if feed.type is FeedType.VIDEO_CHANNEL and config.youtube is None:
            raise ConfigError(f"Feed '{feed.id}' is a YouTube feed but no youtube section is configured")
        try:
            _source_model(feed.type).model_validate(feed.config)
        except ValidationError as exc:
            raise ConfigError(f"Feed '{feed.id}' has an invalid {feed.type.value} config: {exc}") from exc

    logger.info("Configuration validation passed")


def build_descriptors(config: AppConfig) -> List[FeedDescriptor]:
    descriptors: List[FeedDescriptor] = []
    for feed in config.feeds:
        if feed.type is FeedType.SYNDICATION:
            source = SyndicationSource(url=SyndicationFeedConfig.model_validate(feed.config).url)
        else:
            video = VideoFeedConfig.model_validate(feed.config)
            youtube = config.youtube
            max_results = video.max_results or (youtube.default_max_results if youtube else None)
            source = VideoChannelSource(
                api_key=youtube.api_key if youtube else "",
                channel_id=video.channel_id,
                playlist_id=video.playlist_id,
                username=video.username,
                max_results=max_results or DEFAULT_VIDEO_MAX_RESULTS,
            )
        descriptors.append(
            FeedDescriptor(
                id=feed.id,
                name=feed.name,
                type=feed.type,
                source=source,
                enabled=feed.enabled,
                destinations=tuple(feed.publishers),
                poll_interval=timedelta(minutes=feed.check_interval_minutes) if feed.check_interval_minutes else None,
                max_retries=feed.max_retries,
                retry_base_delay=feed.retry_delay_seconds,
            )
        )
    return descriptors


class CredentialStore:
    """
    Writes refreshed OAuth credentials back into the publisher section of the config file.

    The raw document is rewritten without `${ENV}` expansion so placeholders in
    unrelated fields survive.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = Path(config_path)
        self._lock = threading.Lock()

    def save(self, publisher_id: str, credential: Credential) -> None:
        with self._lock:
            try:
                document = read_config_document(self.config_path)
            except (OSError, ConfigError) as exc:
                raise PersistenceError(f"Cannot read {self.config_path}: {exc}") from exc

            publisher = (document.get("publishers") or {}).get(publisher_id)
            if not isinstance(publisher, dict):
                raise PersistenceError(f"Publisher '{publisher_id}' not found in {self.config_path}")
            section = publisher.setdefault("config", {})
            section["access_token"] = credential.access_token
            section["refresh_token"] = credential.refresh_token

            try:
                _write_document(self.config_path, document)
            except OSError as exc:
                raise PersistenceError(f"Cannot write {self.config_path}: {exc}") from exc
        logger.info("Updated %s tokens in configuration file", publisher_id)


def _source_model(feed_type: FeedType):
    return SyndicationFeedConfig if feed_type is FeedType.SYNDICATION else VideoFeedConfig


def _is_json(config_path: Path) -> bool:
    return Path(config_path).suffix.lower() == ".json"


def _write_document(config_path: Path, document: Dict[str, Any]) -> None:
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    if _is_json(config_path):
        text = json.dumps(document, indent=2, ensure_ascii=False)
    else:
        text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    tmp_path = config_path.with_name(config_path.name + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, config_path)


def _expand_env(data: Dict[str, Any]) -> Dict[str, Any]:
    def replace(value: Any) -> Any:
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            env_key = value[2:-1]
            return os.getenv(env_key, "")
        if isinstance(value, dict):
            return {k: replace(v) for k, v in value.items()}
        if isinstance(value, list):
            return [replace(item) for item in value]
        return value

    return replace(data)  # type: ignore[return-value]
