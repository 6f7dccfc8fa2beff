"""
Build publishing targets from the ``publishers`` section of the configuration.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Type

import requests
from pydantic import BaseModel, ValidationError

from feedcast.errors import ConfigError
from feedcast.models import Credential
from feedcast.schemas import AppConfig, PublisherConfig
from feedcast.targets.base import PublishingTarget, build_session
from feedcast.targets.bluesky import BlueskyTarget
from feedcast.targets.discord import DiscordTarget
from feedcast.targets.linkedin import LinkedInTarget, linkedin_oauth_client
from feedcast.targets.mastodon import MastodonTarget
from feedcast.targets.matrix import MatrixTarget
from feedcast.targets.openobserve import OpenObserveTarget
from feedcast.targets.telegram import TelegramTarget
from feedcast.targets.threads import ThreadsTarget
from feedcast.targets.x import XTarget, x_oauth_client
from feedcast.templates import TemplateRenderer
from feedcast.tokens import OAuthClient, TokenManager

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_URI = "https://127.0.0.1"


class TelegramSettings(BaseModel):
    bot_token: str
    chat_id: str
    parse_mode: Optional[str] = None
    message_thread_id: Optional[str] = None
    template: Optional[str] = None


class MastodonSettings(BaseModel):
    server_url: str
    access_token: str
    visibility: str = "public"
    template: Optional[str] = None


class MatrixSettings(BaseModel):
    homeserver_url: str
    access_token: str
    room_id: str
    template: Optional[str] = None


class DiscordSettings(BaseModel):
    webhook_url: str
    username: Optional[str] = None
    template: Optional[str] = None


class XSettings(BaseModel):
    client_id: str
    client_secret: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    template: Optional[str] = None


class LinkedInSettings(BaseModel):
    client_id: str
    client_secret: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    template: Optional[str] = None


class BlueskySettings(BaseModel):
    handle: str
    password: str
    pds_url: Optional[str] = None
    template: Optional[str] = None


class ThreadsSettings(BaseModel):
    access_token: str
    user_id: str
    template: Optional[str] = None


class OpenObserveSettings(BaseModel):
    url: str
    organization: str
    stream_name: str
    access_token: str
    template: Optional[str] = None


SETTINGS_MODELS: Dict[str, Type[BaseModel]] = {
    "telegram": TelegramSettings,
    "mastodon": MastodonSettings,
    "matrix": MatrixSettings,
    "discord": DiscordSettings,
    "x": XSettings,
    "twitter": XSettings,
    "linkedin": LinkedInSettings,
    "bluesky": BlueskySettings,
    "threads": ThreadsSettings,
    "openobserve": OpenObserveSettings,
}
OAUTH_TYPES = {"x", "twitter", "linkedin"}

Persist = Callable[[str, Credential], None]


def parse_publisher_settings(publisher_id: str, publisher: PublisherConfig) -> BaseModel:
    model = SETTINGS_MODELS.get(publisher.type)
    if model is None:
        raise ConfigError(f"Publisher '{publisher_id}' has unsupported type '{publisher.type}'")
    try:
        return model.model_validate(publisher.config)
    except ValidationError as exc:
        raise ConfigError(f"Publisher '{publisher_id}' has an invalid {publisher.type} config: {exc}") from exc


def build_oauth_client(
    publisher_id: str,
    publisher: PublisherConfig,
    session: Optional[requests.Session] = None,
) -> OAuthClient:
    if publisher.type not in OAUTH_TYPES:
        raise ConfigError(f"Publisher '{publisher_id}' ({publisher.type}) does not use OAuth")
    settings = parse_publisher_settings(publisher_id, publisher)
    factory = linkedin_oauth_client if publisher.type == "linkedin" else x_oauth_client
    return factory(settings.client_id, settings.client_secret, settings.redirect_uri, session=session)


def build_target(
    publisher_id: str,
    publisher: PublisherConfig,
    persist: Optional[Persist] = None,
    session: Optional[requests.Session] = None,
    renderer: Optional[TemplateRenderer] = None,
    timeout: float = 20,
    user_agent: Optional[str] = None,
) -> PublishingTarget:
    """Build one target; unless a session is injected, each target gets its own HTTP session."""
    settings = parse_publisher_settings(publisher_id, publisher)
    session = session or build_session(user_agent)
    common = {
        "template": settings.template,
        "session": session,
        "renderer": renderer,
        "timeout": timeout,
    }
    kind = publisher.type

    if kind == "telegram":
        return TelegramTarget(
            publisher_id,
            bot_token=settings.bot_token,
            chat_id=settings.chat_id,
            parse_mode=settings.parse_mode,
            message_thread_id=settings.message_thread_id,
            **common,
        )
    if kind == "mastodon":
        return MastodonTarget(
            publisher_id,
            server_url=settings.server_url,
            access_token=settings.access_token,
            visibility=settings.visibility,
            **common,
        )
    if kind == "matrix":
        return MatrixTarget(
            publisher_id,
            homeserver_url=settings.homeserver_url,
            access_token=settings.access_token,
            room_id=settings.room_id,
            **common,
        )
    if kind == "discord":
        return DiscordTarget(publisher_id, webhook_url=settings.webhook_url, username=settings.username, **common)
    if kind == "bluesky":
        return BlueskyTarget(
            publisher_id,
            handle=settings.handle,
            password=settings.password,
            pds_url=settings.pds_url or None,
            **common,
        )
    if kind == "threads":
        return ThreadsTarget(publisher_id, access_token=settings.access_token, user_id=settings.user_id, **common)
    if kind == "openobserve":
        return OpenObserveTarget(
            publisher_id,
            url=settings.url,
            organization=settings.organization,
            stream_name=settings.stream_name,
            access_token=settings.access_token,
            **common,
        )

    tokens = TokenManager(
        publisher_id,
        build_oauth_client(publisher_id, publisher, session=session),
        Credential(access_token=settings.access_token or None, refresh_token=settings.refresh_token or None),
        persist=persist,
    )
    if kind == "linkedin":
        return LinkedInTarget(publisher_id, tokens=tokens, user_id=settings.user_id or None, **common)
    return XTarget(publisher_id, tokens=tokens, **common)


def build_targets(
    config: AppConfig,
    persist: Optional[Persist] = None,
    session: Optional[requests.Session] = None,
    user_agent: Optional[str] = None,
    timeout: float = 20,
) -> Dict[str, PublishingTarget]:
    renderer = TemplateRenderer()
    targets: Dict[str, PublishingTarget] = {}
    for publisher_id, publisher in config.publishers.items():
        targets[publisher_id] = build_target(
            publisher_id,
            publisher,
            persist=persist,
            session=session,
            renderer=renderer,
            timeout=timeout,
            user_agent=user_agent,
        )
        logger.info("Configured %s publisher: %s", publisher.type, publisher_id)
    return targets
