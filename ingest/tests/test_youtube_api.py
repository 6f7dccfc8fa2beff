import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from ingest.infra.errors import HttpStatusError, PermanentFetchError
from ingest.ingesters.youtube_api import YouTubeApiClient


def _json_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


def _playlist_item(video_id, title, published="2024-01-01T00:00:00Z"):
    return {
        "snippet": {
            "title": title,
            "description": f"about {title}",
            "publishedAt": published,
            "resourceId": {"videoId": video_id},
            "channelTitle": "Channel",
        }
    }


class ResolveUploadsPlaylistTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = MagicMock()
        self.client = YouTubeApiClient("api-key", session=self.session)

    def test_direct_playlist_skips_api(self):
        self.assertEqual(self.client.resolve_uploads_playlist(playlist_id="PL123"), "PL123")
        self.session.get.assert_not_called()

    def test_channel_resolves_uploads(self):
        self.session.get.return_value = _json_response(
            {"items": [{"contentDetails": {"relatedPlaylists": {"uploads": "UU42"}}}]}
        )

        self.assertEqual(self.client.resolve_uploads_playlist(channel_id="UC42"), "UU42")
        params = self.session.get.call_args.kwargs["params"]
        self.assertEqual(params["id"], "UC42")
        self.assertEqual(params["key"], "api-key")

    def test_username_resolves_channel_first(self):
        self.session.get.side_effect = [
            _json_response({"items": [{"id": "UC7"}]}),
            _json_response({"items": [{"contentDetails": {"relatedPlaylists": {"uploads": "UU7"}}}]}),
        ]

        self.assertEqual(self.client.resolve_uploads_playlist(username="someone"), "UU7")
        self.assertEqual(self.session.get.call_args_list[0].kwargs["params"]["forUsername"], "someone")

    def test_unknown_channel_is_permanent(self):
        self.session.get.return_value = _json_response({"items": []})

        with self.assertRaises(PermanentFetchError):
            self.client.resolve_uploads_playlist(channel_id="missing")

    def test_no_identifier(self):
        with self.assertRaises(PermanentFetchError):
            self.client.resolve_uploads_playlist()

    def test_http_errors_are_redacted(self):
        self.session.get.return_value = _json_response({"error": "key=api-key invalid"}, status_code=403)

        with self.assertRaises(HttpStatusError) as ctx:
            self.client.resolve_uploads_playlist(channel_id="UC1")

        self.assertEqual(ctx.exception.status_code, 403)
        self.assertNotIn("api-key", str(ctx.exception))


class ListPlaylistVideosTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = MagicMock()
        self.client = YouTubeApiClient("api-key", session=self.session)

    def test_skips_private_deleted_and_blank_entries(self):
        self.session.get.return_value = _json_response(
            {
                "items": [
                    _playlist_item("a", "Real video", "2024-02-01T10:00:00Z"),
                    _playlist_item("b", "Private video"),
                    _playlist_item("c", "Deleted video"),
                    _playlist_item("d", ""),
                    _playlist_item("", "No id"),
                ]
            }
        )

        videos = self.client.list_playlist_videos("UU1")

        self.assertEqual([video.video_id for video in videos], ["a"])
        self.assertEqual(videos[0].published_at, datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(videos[0].url, "https://www.youtube.com/watch?v=a")
        self.assertEqual(videos[0].description, "about Real video")

    def test_follows_next_page_until_fetch_count(self):
        page_one = {"items": [_playlist_item(f"v{i}", f"Video {i}") for i in range(50)], "nextPageToken": "p2"}
        page_two = {"items": [_playlist_item("w1", "Later")], "nextPageToken": "p3"}
        self.session.get.side_effect = [_json_response(page_one), _json_response(page_two)]

        videos = self.client.list_playlist_videos("UU1", fetch_count=51)

        self.assertEqual(len(videos), 51)
        self.assertEqual(self.session.get.call_count, 2)
        self.assertEqual(self.session.get.call_args_list[1].kwargs["params"]["pageToken"], "p2")

    def test_stops_after_one_page_by_default(self):
        page = {"items": [_playlist_item(f"v{i}", f"Video {i}") for i in range(50)], "nextPageToken": "p2"}
        self.session.get.return_value = _json_response(page)

        videos = self.client.list_playlist_videos("UU1")

        self.assertEqual(len(videos), 50)
        self.assertEqual(self.session.get.call_count, 1)

    def test_bad_publish_date_defaults_to_now(self):
        self.session.get.return_value = _json_response({"items": [_playlist_item("x", "Odd date", "not-a-date")]})
        before = datetime.now(timezone.utc)

        videos = self.client.list_playlist_videos("UU1")

        self.assertGreaterEqual(videos[0].published_at, before)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
