"""
Bluesky (AT Protocol) target.

Each publish opens a session with the account's app password and then creates
an ``app.bsky.feed.post`` record in the account's repo, identified by its DID.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from feedcast.errors import PublishError
from feedcast.models import Item
from feedcast.targets.base import HttpTarget


DEFAULT_PDS_URL = "https://bsky.social"
MAX_POST_LENGTH = 300
POST_COLLECTION = "app.bsky.feed.post"

_URL_RE = re.compile(r"https?://[^\s]+")


def fit_post(text: str) -> str:
    if len(text) <= MAX_POST_LENGTH:
        return text
    return text[: MAX_POST_LENGTH - 3] + "..."


def link_facets(text: str) -> List[Dict]:
    """Link facets for every URL in ``text``; indexes are UTF-8 byte offsets."""
    facets = []
    for match in _URL_RE.finditer(text):
        start = len(text[: match.start()].encode("utf-8"))
        end = start + len(match.group(0).encode("utf-8"))
        facets.append(
            {
                "$type": "app.bsky.richtext.facet",
                "index": {"byteStart": start, "byteEnd": end},
                "features": [{"$type": "app.bsky.richtext.facet#link", "uri": match.group(0)}],
            }
        )
    return facets


class BlueskyTarget(HttpTarget):
    kind = "bluesky"

    def __init__(
        self,
        id: str,
        handle: str,
        password: str,
        pds_url: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        **kwargs,
    ) -> None:
        super().__init__(id, **kwargs)
        self.handle = handle
        self.password = password
        self.pds_url = (pds_url or DEFAULT_PDS_URL).rstrip("/")
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _create_session(self) -> Tuple[str, str]:
        resp = self._request(
            "POST",
            f"{self.pds_url}/xrpc/com.atproto.server.createSession",
            json={"identifier": self.handle, "password": self.password},
        )
        payload = self._json(resp)
        access_jwt, did = payload.get("accessJwt"), payload.get("did")
        if not access_jwt or not did:
            raise PublishError(f"{self.id}: missing access token or DID in Bluesky auth response")
        return access_jwt, did

    def publish(self, item: Item) -> str:
        text = fit_post(self.render(item))
        access_jwt, did = self._create_session()

        record = {"$type": POST_COLLECTION, "text": text, "createdAt": self.clock().isoformat()}
        facets = link_facets(text)
        if facets:
            record["facets"] = facets

        resp = self._request(
            "POST",
            f"{self.pds_url}/xrpc/com.atproto.repo.createRecord",
            json={"repo": did, "collection": POST_COLLECTION, "record": record},
            headers={"Authorization": f"Bearer {access_jwt}"},
        )
        return f"Published to Bluesky: {self._json(resp).get('uri', 'unknown')}"
