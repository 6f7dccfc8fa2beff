"""
LinkedIn UGC post target authenticated with OAuth 2.0 member tokens.
"""
from __future__ import annotations

import logging
from typing import Optional

from feedcast.errors import PublishError
from feedcast.models import Item
from feedcast.targets.base import HttpTarget
from feedcast.tokens import OAuthClient, TokenManager

logger = logging.getLogger(__name__)

UGC_POSTS_URL = "https://api.linkedin.com/v2/ugcPosts"
USERINFO_URL = "https://api.linkedin.com/v2/userinfo"
TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
AUTHORIZE_URL = "https://www.linkedin.com/oauth/v2/authorization"
SCOPES = ["w_member_social", "openid", "profile", "email"]
RESTLI_HEADERS = {"X-Restli-Protocol-Version": "2.0.0"}


def linkedin_oauth_client(client_id: str, client_secret: str, redirect_uri: str, session=None) -> OAuthClient:
    return OAuthClient(
        token_url=TOKEN_URL,
        client_id=client_id,
        client_secret=client_secret,
        authorize_url=AUTHORIZE_URL,
        scopes=SCOPES,
        redirect_uri=redirect_uri,
        basic_auth=False,
        session=session,
    )


def author_urn(user_id: str) -> str:
    # numeric ids are organization pages
    if user_id.isdigit():
        return f"urn:li:organization:{user_id}"
    return f"urn:li:person:{user_id}"


class LinkedInTarget(HttpTarget):
    kind = "linkedin"

    def __init__(self, id: str, tokens: TokenManager, user_id: Optional[str] = None, **kwargs) -> None:
        super().__init__(id, **kwargs)
        self.tokens = tokens
        self.user_id = user_id
        self._member_urn: Optional[str] = None

    def publish(self, item: Item) -> str:
        commentary = self.render(item)
        logger.info("Attempting to publish to LinkedIn: %r", commentary)

        def post(token: str) -> str:
            payload = {
                "author": self._author(token),
                "lifecycleState": "PUBLISHED",
                "specificContent": {
                    "com.linkedin.ugc.ShareContent": {
                        "shareCommentary": {"text": commentary},
                        "shareMediaCategory": "ARTICLE",
                        "media": [
                            {
                                "status": "READY",
                                "description": {"text": item.body or ""},
                                "originalUrl": item.url,
                                "title": {"text": item.title},
                            }
                        ],
                    }
                },
                "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
            }
            resp = self._request(
                "POST",
                UGC_POSTS_URL,
                json=payload,
                headers={"Authorization": f"Bearer {token}", **RESTLI_HEADERS},
            )
            post_id = self._json(resp).get("id") or resp.headers.get("x-restli-id", "unknown")
            return f"Published to LinkedIn: {post_id}"

        return self.tokens.call_with_refresh(post)

    def _author(self, token: str) -> str:
        if self.user_id:
            return author_urn(self.user_id)
        if self._member_urn:
            return self._member_urn
        resp = self._request("GET", USERINFO_URL, headers={"Authorization": f"Bearer {token}"})
        subject = self._json(resp).get("sub")
        if not subject:
            raise PublishError("Could not get user ID from LinkedIn profile")
        self._member_urn = f"urn:li:person:{subject}"
        return self._member_urn
