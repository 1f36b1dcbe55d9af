import httpx
import pytest

from danmu_api.scrapers.bahamut import BahamutScraper, parse_danmaku_json
from danmu_api.scrapers.base import EpisodeResolutionError

DANMU_PATH = "api.gamer.com.tw/anime/v1/danmu.php"
SEARCH_PATH = "api.gamer.com.tw/mobile_app/anime/v1/search.php"
SERIES_PATH = "api.gamer.com.tw/anime/v1/video.php"


@pytest.mark.unit
class Describe_parse_danmaku_json:
    def test_should_keep_native_units(self):
        payload = {"data": {"danmu": [
            {"text": "好耶", "color": "#FF0000", "size": 1, "position": 1, "time": 125, "sn": 1, "userid": "user01"},
        ]}}
        [record] = parse_danmaku_json(payload)
        assert (record.content, record.time, record.color, record.position, record.user) == (
            "好耶", 125, "#FF0000", 1, "user01"
        )

    def test_should_retain_empty_text(self):
        assert [r.content for r in parse_danmaku_json({"data": {"danmu": [{"text": ""}]}})] == [""]

    def test_given_missing_data_should_return_empty(self):
        assert parse_danmaku_json({}) == []


@pytest.mark.unit
class Describe_BahamutScraper_fetch_danmaku:
    def test_should_normalize_deciseconds_and_hex_colors(self, mock_transport, run):
        payload = {"data": {"danmu": [
            {"text": "上", "color": "#FF0000", "position": 2, "time": 125, "userid": "a"},
            {"text": "下", "color": "#ffffff", "position": 1, "time": 3, "userid": "b"},
            {"text": "滚", "color": "#00ff00", "position": 0, "time": 0, "userid": "c"},
        ]}}
        scraper = BahamutScraper(transport=mock_transport({DANMU_PATH: httpx.Response(200, json=payload)}))
        danmaku = run(scraper.fetch_danmaku("34886"), scraper)
        assert [d.meta for d in danmaku] == [
            "12.50,4,16711680,a",
            "0.30,5,16777215,b",
            "0.00,1,65280,c",
        ]

    def test_given_no_danmaku_should_return_empty(self, mock_transport, run):
        scraper = BahamutScraper(transport=mock_transport({DANMU_PATH: httpx.Response(200, json={"data": {}})}))
        assert run(scraper.fetch_danmaku("1"), scraper) == []

    def test_given_invalid_id_should_raise(self, mock_transport, run):
        scraper = BahamutScraper(transport=mock_transport({}))
        with pytest.raises(EpisodeResolutionError):
            run(scraper.fetch_danmaku("abc"), scraper)

    def test_given_endpoint_error_should_raise(self, mock_transport, run):
        scraper = BahamutScraper(transport=mock_transport({DANMU_PATH: httpx.Response(500)}))
        with pytest.raises(EpisodeResolutionError):
            run(scraper.fetch_danmaku("1"), scraper)


@pytest.mark.unit
class Describe_BahamutScraper_search:
    def test_given_failed_series_lookup_should_return_media_without_episodes(self, mock_transport, run):
        search_payload = {"anime": [
            {"anime_sn": 1, "video_sn": 100, "title": "孤獨搖滾", "cover": "http://c1"},
            {"anime_sn": 2, "video_sn": 200, "title": "失敗", "cover": "http://c2"},
        ]}
        series_payload = {"data": {
            "video": {"type": 0},
            "anime": {"title": "孤獨搖滾", "episodeIndex": 0, "episodes": {
                "0": [{"episode": 1, "videoSn": 101}, {"episode": 2, "videoSn": 102}],
                "1": [{"episode": 1, "videoSn": 199}],
            }},
        }}

        def series(request: httpx.Request) -> httpx.Response:
            if request.url.params["videoSn"] == "100":
                return httpx.Response(200, json=series_payload)
            return httpx.Response(500)

        scraper = BahamutScraper(transport=mock_transport({
            SEARCH_PATH: httpx.Response(200, json=search_payload),
            SERIES_PATH: series,
        }))
        results = run(scraper.search("孤獨"), scraper)
        assert [m.title for m in results] == ["孤獨搖滾", "失敗"]
        assert [(e.id, e.title) for e in results[0].episodes] == [("101", "第 1 集"), ("102", "第 2 集")]
        assert results[1].episodes == []

    def test_given_no_matches_should_return_empty(self, mock_transport, run):
        scraper = BahamutScraper(transport=mock_transport({SEARCH_PATH: httpx.Response(200, json={"anime": []})}))
        assert run(scraper.search("none"), scraper) == []


@pytest.mark.unit
class Describe_parse_danmaku_json_malformed_records:
    def test_given_null_and_numeric_fields_should_keep_every_record(self):
        payload = {"data": {"danmu": [
            {"text": "ok", "color": "#FF0000", "position": 2, "time": 10, "userid": "a"},
            {"text": "bad", "color": None, "position": None, "time": None, "userid": 42},
        ]}}
        records = parse_danmaku_json(payload)
        assert [r.content for r in records] == ["ok", "bad"]
        assert records[1].user == "42"
        assert records[1].color is None

    def test_given_non_object_entries_should_skip_only_those(self):
        payload = {"data": {"danmu": ["garbage", None, {"text": "留下", "time": 1.5, "position": 1.0}]}}
        [record] = parse_danmaku_json(payload)
        assert (record.content, record.time, record.position) == ("留下", 1.5, 1)


@pytest.mark.unit
class Describe_BahamutScraper_fetch_danmaku_malformed:
    def test_given_one_bad_record_should_still_return_all_comments(self, mock_transport, run):
        payload = {"data": {"danmu": [
            {"text": "ok", "color": "#ffffff", "position": 0, "time": 20, "userid": "u"},
            {"text": "bad", "color": None, "position": "x", "time": "oops", "userid": 42},
        ]}}
        scraper = BahamutScraper(transport=mock_transport({DANMU_PATH: httpx.Response(200, json=payload)}))
        danmaku = run(scraper.fetch_danmaku("1"), scraper)
        assert [(d.text, d.meta) for d in danmaku] == [
            ("ok", "2.00,1,16777215,u"),
            ("bad", "0.00,1,16777215,42"),
        ]

    @pytest.mark.parametrize("episode_id", ["²", "١٢", " 1", "+1", ""])
    def test_given_non_ascii_digit_id_should_raise_resolution_error(self, mock_transport, run, episode_id):
        scraper = BahamutScraper(transport=mock_transport({}))
        with pytest.raises(EpisodeResolutionError):
            run(scraper.fetch_danmaku(episode_id), scraper)
