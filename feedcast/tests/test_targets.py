import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

import requests

from feedcast.errors import ConfigError, PublishError, UnauthorizedError
from feedcast.models import Credential, Item
from feedcast.schemas import AppConfig
from feedcast.targets.bluesky import BlueskyTarget, link_facets
from feedcast.targets.discord import DiscordTarget
from feedcast.targets.factory import build_oauth_client, build_targets
from feedcast.targets.linkedin import LinkedInTarget, author_urn
from feedcast.targets.mastodon import MastodonTarget
from feedcast.targets.matrix import MatrixTarget
from feedcast.targets.openobserve import OpenObserveTarget
from feedcast.targets.telegram import TelegramTarget
from feedcast.targets.threads import ThreadsTarget
from feedcast.targets.x import XTarget, fit_tweet
from feedcast.tokens import TokenGrant, TokenManager

ITEM = Item(
    id="1",
    title="Release notes",
    url="https://example.com/release",
    published_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    feed_id="blog",
    body="<p>What changed</p>",
)


def _response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = text
    response.headers = {}
    return response


class _StaticOAuth:
    def __init__(self, access="fresh"):
        self.access = access
        self.calls = 0

    def refresh(self, refresh_token):
        self.calls += 1
        return TokenGrant(self.access, refresh_token)


class TelegramTargetTests(unittest.TestCase):
    def test_posts_rendered_message(self):
        session = MagicMock()
        session.request.return_value = _response(payload={"ok": True, "result": {"message_id": 42}})
        target = TelegramTarget("tg", bot_token="123:abc", chat_id="@chan", message_thread_id="7", session=session)

        result = target.publish(ITEM)

        self.assertEqual(result, "Published to Telegram: 42")
        method, url = session.request.call_args.args
        self.assertEqual((method, url), ("POST", "https://api.telegram.org/bot123:abc/sendMessage"))
        payload = session.request.call_args.kwargs["json"]
        self.assertEqual(payload["chat_id"], "@chan")
        self.assertEqual(payload["message_thread_id"], 7)
        self.assertIn("**Release notes**", payload["text"])
        self.assertNotIn("parse_mode", payload)

    def test_message_too_long(self):
        session = MagicMock()
        target = TelegramTarget("tg", bot_token="t", chat_id="c", template="{{ title }}" + "x" * 5000, session=session)

        with self.assertRaises(PublishError):
            target.publish(ITEM)
        session.request.assert_not_called()

    def test_error_response_hides_bot_token(self):
        session = MagicMock()
        session.request.return_value = _response(400, text="Bad Request: /bot123:abc/sendMessage")
        target = TelegramTarget("tg", bot_token="123:abc", chat_id="c", session=session)

        with self.assertRaises(PublishError) as ctx:
            target.publish(ITEM)
        self.assertNotIn("123:abc", str(ctx.exception))

    def test_network_failure_becomes_publish_error(self):
        session = MagicMock()
        session.request.side_effect = requests.ConnectionError("refused")
        target = TelegramTarget("tg", bot_token="t", chat_id="c", session=session)

        with self.assertRaises(PublishError):
            target.publish(ITEM)


class SimpleTargetTests(unittest.TestCase):
    def test_mastodon(self):
        session = MagicMock()
        session.request.return_value = _response(payload={"id": "99"})
        target = MastodonTarget("md", server_url="https://social.example/", access_token="tok", session=session)

        self.assertEqual(target.publish(ITEM), "Published to Mastodon: 99")
        self.assertEqual(session.request.call_args.args[1], "https://social.example/api/v1/statuses")
        self.assertEqual(session.request.call_args.kwargs["headers"]["Authorization"], "Bearer tok")

    def test_matrix_sends_html_and_plain_bodies(self):
        session = MagicMock()
        session.request.return_value = _response(payload={"event_id": "$ev"})
        target = MatrixTarget("mx", homeserver_url="https://matrix.example", access_token="tok", room_id="!room:example", session=session)

        self.assertEqual(target.publish(ITEM), "Published to Matrix: $ev")
        method, url = session.request.call_args.args
        self.assertEqual(method, "PUT")
        self.assertIn("/rooms/%21room%3Aexample/send/m.room.message/", url)
        payload = session.request.call_args.kwargs["json"]
        self.assertEqual(payload["body"], "Release notes\n\nWhat changed\n\nhttps://example.com/release")
        self.assertTrue(payload["formatted_body"].startswith("<h3>Release notes</h3>"))

    def test_discord_webhook(self):
        session = MagicMock()
        session.request.return_value = _response(payload={"id": "m1"})
        target = DiscordTarget("dc", webhook_url="https://discord.example/api/webhooks/1/x", username="bot", session=session)

        self.assertEqual(target.publish(ITEM), "Published to Discord: m1")
        payload = session.request.call_args.kwargs["json"]
        self.assertEqual(payload["username"], "bot")
        self.assertLessEqual(len(payload["content"]), 2000)

    def test_unauthorized_maps_to_specific_error(self):
        session = MagicMock()
        session.request.return_value = _response(401, text="expired")
        target = MastodonTarget("md", server_url="https://social.example", access_token="tok", session=session)

        with self.assertRaises(UnauthorizedError):
            target.publish(ITEM)


class BlueskyTargetTests(unittest.TestCase):
    def test_creates_session_then_record(self):
        session = MagicMock()
        session.request.side_effect = [
            _response(payload={"accessJwt": "jwt", "did": "did:plc:abc"}),
            _response(payload={"uri": "at://did:plc:abc/app.bsky.feed.post/1"}),
        ]
        target = BlueskyTarget(
            "bs",
            handle="me.bsky.social",
            password="app-pass",
            session=session,
            clock=lambda: datetime(2024, 6, 1, tzinfo=timezone.utc),
        )

        self.assertEqual(target.publish(ITEM), "Published to Bluesky: at://did:plc:abc/app.bsky.feed.post/1")
        login, create = session.request.call_args_list
        self.assertEqual(login.args[1], "https://bsky.social/xrpc/com.atproto.server.createSession")
        self.assertEqual(login.kwargs["json"], {"identifier": "me.bsky.social", "password": "app-pass"})
        self.assertEqual(create.args[1], "https://bsky.social/xrpc/com.atproto.repo.createRecord")
        self.assertEqual(create.kwargs["headers"]["Authorization"], "Bearer jwt")
        payload = create.kwargs["json"]
        self.assertEqual(payload["repo"], "did:plc:abc")
        record = payload["record"]
        self.assertEqual(record["createdAt"], "2024-06-01T00:00:00+00:00")
        self.assertEqual(record["facets"][0]["features"][0]["uri"], "https://example.com/release")

    def test_missing_did_fails(self):
        session = MagicMock()
        session.request.return_value = _response(payload={"accessJwt": "jwt"})
        target = BlueskyTarget("bs", handle="h", password="p", pds_url="https://pds.example/", session=session)

        with self.assertRaises(PublishError):
            target.publish(ITEM)
        self.assertEqual(session.request.call_count, 1)
        self.assertEqual(session.request.call_args.args[1], "https://pds.example/xrpc/com.atproto.server.createSession")

    def test_facet_offsets_are_utf8_bytes(self):
        facets = link_facets("é https://a.example")

        self.assertEqual(facets[0]["index"], {"byteStart": 3, "byteEnd": 20})


class ThreadsTargetTests(unittest.TestCase):
    def test_creates_and_publishes_container(self):
        session = MagicMock()
        session.request.side_effect = [_response(payload={"id": "c1"}), _response(payload={"id": "p1"})]
        sleeps = []
        target = ThreadsTarget("th", access_token="tok", user_id="42", session=session, sleep=sleeps.append)

        self.assertEqual(target.publish(ITEM), "Published to Threads: p1")
        create, publish = session.request.call_args_list
        self.assertEqual(create.args[1], "https://graph.threads.net/v1.0/42/threads")
        self.assertEqual(create.kwargs["json"]["media_type"], "TEXT")
        self.assertEqual(publish.args[1], "https://graph.threads.net/v1.0/42/threads_publish")
        self.assertEqual(publish.kwargs["json"], {"creation_id": "c1", "access_token": "tok"})
        self.assertEqual(sleeps, [2.0])

    def test_missing_container_is_retried_once(self):
        session = MagicMock()
        session.request.side_effect = [
            _response(payload={"id": "c1"}),
            _response(400, text="Media container does not exist"),
            _response(payload={"id": "p1"}),
        ]
        sleeps = []
        target = ThreadsTarget("th", access_token="tok", user_id="42", session=session, sleep=sleeps.append)

        self.assertEqual(target.publish(ITEM), "Published to Threads: p1")
        self.assertEqual(sleeps, [2.0, 3.0])

    def test_other_publish_errors_are_not_retried(self):
        session = MagicMock()
        session.request.side_effect = [_response(payload={"id": "c1"}), _response(400, text="bad request")]
        target = ThreadsTarget("th", access_token="tok", user_id="42", session=session, sleep=lambda _s: None)

        with self.assertRaises(PublishError):
            target.publish(ITEM)
        self.assertEqual(session.request.call_count, 2)


class OpenObserveTargetTests(unittest.TestCase):
    def test_ships_item_as_log_entry(self):
        session = MagicMock()
        session.request.return_value = _response(payload={"code": 200})
        target = OpenObserveTarget(
            "oo",
            url="https://o2.example/",
            organization="default",
            stream_name="feeds",
            access_token="YWRtaW46cGFzcw==",
            session=session,
        )

        self.assertEqual(target.publish(ITEM), "Published to OpenObserve: 1")
        self.assertEqual(session.request.call_args.args[1], "https://o2.example/api/default/feeds/_json")
        self.assertEqual(session.request.call_args.kwargs["headers"]["Authorization"], "Basic YWRtaW46cGFzcw==")
        (entry,) = session.request.call_args.kwargs["json"]
        self.assertEqual(entry["feed_id"], "blog")
        self.assertEqual(entry["link"], "https://example.com/release")
        self.assertTrue(entry["formatted_message"].startswith("Feed: Release notes"))


class OAuthTargetTests(unittest.TestCase):
    def test_x_refreshes_on_401_and_retries_once(self):
        session = MagicMock()
        session.request.side_effect = [_response(401, text="expired"), _response(201, payload={"data": {"id": "t1"}})]
        oauth = _StaticOAuth("fresh")
        tokens = TokenManager("x", oauth, Credential("stale", "refresh"))
        target = XTarget("x", tokens=tokens, session=session)

        self.assertEqual(target.publish(ITEM), "Published to X: t1")
        self.assertEqual(oauth.calls, 1)
        auth_headers = [call.kwargs["headers"]["Authorization"] for call in session.request.call_args_list]
        self.assertEqual(auth_headers, ["Bearer stale", "Bearer fresh"])

    def test_fit_tweet(self):
        self.assertEqual(len(fit_tweet("a" * 300)), 280)
        self.assertTrue(fit_tweet("a" * 300).endswith("..."))
        self.assertEqual(fit_tweet("short"), "short")

    def test_linkedin_resolves_member_urn(self):
        session = MagicMock()
        session.request.side_effect = [_response(payload={"sub": "abc123"}), _response(201, payload={"id": "urn:li:share:1"})]
        tokens = TokenManager("li", _StaticOAuth(), Credential("tok", "r"))
        target = LinkedInTarget("li", tokens=tokens, session=session)

        self.assertEqual(target.publish(ITEM), "Published to LinkedIn: urn:li:share:1")
        payload = session.request.call_args.kwargs["json"]
        self.assertEqual(payload["author"], "urn:li:person:abc123")
        media = payload["specificContent"]["com.linkedin.ugc.ShareContent"]["media"][0]
        self.assertEqual(media["originalUrl"], "https://example.com/release")

    def test_author_urn(self):
        self.assertEqual(author_urn("12345"), "urn:li:organization:12345")
        self.assertEqual(author_urn("aBc"), "urn:li:person:aBc")


class FactoryTests(unittest.TestCase):
    def _config(self, publishers):
        return AppConfig.model_validate({"publishers": publishers})

    def test_builds_each_known_type(self):
        config = self._config(
            {
                "tg": {"type": "telegram", "config": {"bot_token": "t", "chat_id": "c"}},
                "md": {"type": "Mastodon", "config": {"server_url": "https://m", "access_token": "a"}},
                "mx": {"type": "matrix", "config": {"homeserver_url": "https://mx", "access_token": "a", "room_id": "!r"}},
                "dc": {"type": "discord", "config": {"webhook_url": "https://d"}},
                "x": {"type": "x", "config": {"client_id": "i", "client_secret": "s", "template": "{{ url }}"}},
                "li": {"type": "linkedin", "config": {"client_id": "i", "client_secret": "s", "user_id": "42"}},
                "bs": {"type": "bluesky", "config": {"handle": "h", "password": "p"}},
                "th": {"type": "threads", "config": {"access_token": "t", "user_id": "1"}},
                "oo": {"type": "openobserve", "config": {"url": "https://o2", "organization": "o", "stream_name": "s", "access_token": "a"}},
            }
        )

        targets = build_targets(config, session=MagicMock())

        self.assertEqual(
            {name: type(target).__name__ for name, target in targets.items()},
            {
                "tg": "TelegramTarget",
                "md": "MastodonTarget",
                "mx": "MatrixTarget",
                "dc": "DiscordTarget",
                "x": "XTarget",
                "li": "LinkedInTarget",
                "bs": "BlueskyTarget",
                "th": "ThreadsTarget",
                "oo": "OpenObserveTarget",
            },
        )
        self.assertEqual(targets["x"].template, "{{ url }}")
        self.assertTrue(targets["x"].tokens.oauth_client.basic_auth)
        self.assertFalse(targets["li"].tokens.oauth_client.basic_auth)

    def test_invalid_publisher_config(self):
        with self.assertRaises(ConfigError):
            build_targets(self._config({"tg": {"type": "telegram", "config": {"chat_id": "c"}}}), session=MagicMock())

    def test_unsupported_type(self):
        with self.assertRaises(ConfigError):
            build_targets(self._config({"ms": {"type": "myspace", "config": {}}}), session=MagicMock())

    def test_each_target_gets_its_own_session(self):
        config = self._config(
            {
                "md": {"type": "mastodon", "config": {"server_url": "https://m", "access_token": "a"}},
                "dc": {"type": "discord", "config": {"webhook_url": "https://d"}},
                "x": {"type": "x", "config": {"client_id": "i", "client_secret": "s"}},
            }
        )

        targets = build_targets(config, user_agent="feedcast-test")

        self.assertIsNot(targets["md"].session, targets["dc"].session)
        self.assertIsNot(targets["md"].session, targets["x"].session)
        self.assertEqual(targets["dc"].session.headers["User-Agent"], "feedcast-test")
        self.assertIs(targets["x"].tokens.oauth_client.session, targets["x"].session)

    def test_oauth_client_only_for_oauth_publishers(self):
        config = self._config({"tg": {"type": "telegram", "config": {"bot_token": "t", "chat_id": "c"}}})
        with self.assertRaises(ConfigError):
            build_oauth_client("tg", config.publishers["tg"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
