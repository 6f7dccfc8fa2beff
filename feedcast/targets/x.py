"""
X (Twitter) API v2 target authenticated with OAuth 2.0 user tokens.
"""
from __future__ import annotations

import logging

from feedcast.models import Item
from feedcast.targets.base import HttpTarget
from feedcast.tokens import OAuthClient, TokenManager

logger = logging.getLogger(__name__)

TWEETS_URL = "https://api.twitter.com/2/tweets"
TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
AUTHORIZE_URL = "https://twitter.com/i/oauth2/authorize"
SCOPES = ["tweet.read", "tweet.write", "users.read", "offline.access"]
MAX_TWEET_LENGTH = 280


def x_oauth_client(client_id: str, client_secret: str, redirect_uri: str, session=None) -> OAuthClient:
    return OAuthClient(
        token_url=TOKEN_URL,
        client_id=client_id,
        client_secret=client_secret,
        authorize_url=AUTHORIZE_URL,
        scopes=SCOPES,
        redirect_uri=redirect_uri,
        basic_auth=True,
        session=session,
    )


def fit_tweet(text: str) -> str:
    if len(text) <= MAX_TWEET_LENGTH:
        return text
    return text[: MAX_TWEET_LENGTH - 3] + "..."


class XTarget(HttpTarget):
    kind = "x"

    def __init__(self, id: str, tokens: TokenManager, **kwargs) -> None:
        super().__init__(id, **kwargs)
        self.tokens = tokens

    def publish(self, item: Item) -> str:
        text = fit_tweet(self.render(item))
        logger.info("Attempting to publish to X: %r", text)

        def post(token: str) -> str:
            resp = self._request(
                "POST",
                TWEETS_URL,
                json={"text": text},
                headers={"Authorization": f"Bearer {token}"},
            )
            data = self._json(resp).get("data") or {}
            return f"Published to X: {data.get('id', 'unknown')}"

        return self.tokens.call_with_refresh(post)
