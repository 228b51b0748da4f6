import asyncio

from conftest import FakeSource, make_rar, make_zip, mark_zip_encrypted
from ro_subtitles.cache import TTLCache
from ro_subtitles.fetcher import SubtitleFetcher, decode_payload, text_cache_key
from ro_subtitles.metadata import SeasonEpisodeTarget

EP1 = "1\n00:00:01,000 --> 00:00:02,000\nPrimul episod, ție\n"
EP2 = "1\n00:00:01,000 --> 00:00:02,000\nAl doilea episod\n"


def _fetch(fetcher, subtitle_id, target=SeasonEpisodeTarget()):
    return asyncio.run(fetcher.fetch_text(subtitle_id, target))


def test_cache_key_ignores_malformed_target():
    assert text_cache_key("5", SeasonEpisodeTarget(1, 2)) == "srt:5:1:2"
    assert text_cache_key("5", SeasonEpisodeTarget(1, None)) == "srt:5::"


def test_zip_episode_selection():
    payload = make_zip({"Show.S01E01.srt": EP1, "Show.S01E02.srt": EP2})
    fetcher = SubtitleFetcher(FakeSource({"10": payload}), TTLCache())
    assert _fetch(fetcher, "10", SeasonEpisodeTarget(1, 2)) == EP2
    assert _fetch(fetcher, "10", SeasonEpisodeTarget(1, 1)) == EP1


def test_zip_without_target_takes_first_entry():
    payload = make_zip({"notes.txt": "x", "b.srt": EP2, "a.srt": EP1})
    assert decode_payload(payload, SeasonEpisodeTarget()) == EP2


def test_plain_payload_is_decoded():
    data = "1\r\n00:00:01,000 --> 00:00:02,000\r\nşi ţara\r\n".encode("cp1250")
    text = decode_payload(data, SeasonEpisodeTarget())
    assert text == "1\n00:00:01,000 --> 00:00:02,000\nși țara\n"


def test_repeated_fetch_hits_cache_once():
    payload = make_zip({"Show.S01E01.srt": EP1})
    source = FakeSource({"10": payload})
    fetcher = SubtitleFetcher(source, TTLCache())
    target = SeasonEpisodeTarget(1, 1)
    first = _fetch(fetcher, "10", target)
    second = _fetch(fetcher, "10", target)
    assert first == second == EP1
    assert source.download_calls == 1


def test_concurrent_fetches_share_one_download():
    source = FakeSource({"10": EP1.encode("utf-8")})
    fetcher = SubtitleFetcher(source, TTLCache())

    async def main():
        return await asyncio.gather(*(fetcher.fetch_text("10", SeasonEpisodeTarget()) for _ in range(4)))

    assert asyncio.run(main()) == [EP1] * 4
    assert source.download_calls == 1


def test_network_failure_returns_none_and_is_not_cached():
    source = FakeSource(fail=True)
    cache = TTLCache()
    fetcher = SubtitleFetcher(source, cache)
    assert _fetch(fetcher, "10") is None
    assert _fetch(fetcher, "10") is None
    assert source.download_calls == 2
    assert len(cache) == 0


def test_archive_without_subtitles_is_unavailable():
    payload = make_zip({"readme.txt": "x"})
    fetcher = SubtitleFetcher(FakeSource({"10": payload}), TTLCache())
    assert _fetch(fetcher, "10") is None


def test_broken_archive_is_unavailable():
    fetcher = SubtitleFetcher(FakeSource({"10": b"PK\x03\x04garbage"}), TTLCache())
    assert _fetch(fetcher, "10") is None


def test_microdvd_sub_entry_is_converted():
    payload = make_zip({"Film.sub": "{0}{24}Salut\n{48}{72}Pa\n{96}{120}Gata\n"})
    fetcher = SubtitleFetcher(FakeSource({"10": payload}), TTLCache())
    text = _fetch(fetcher, "10")
    assert text.startswith("1\n00:00:00,000 --> 00:00:01,001\nSalut")


def test_encrypted_archive_is_unavailable():
    payload = mark_zip_encrypted(make_zip({"Show.S01E01.srt": EP1}))
    cache = TTLCache()
    fetcher = SubtitleFetcher(FakeSource({"10": payload}), cache)
    assert _fetch(fetcher, "10", SeasonEpisodeTarget(1, 1)) is None
    assert len(cache) == 0


def test_rar_episode_selection():
    payload = make_rar({"Show.S01E01.srt": EP1, "Show.S01E02.srt": EP2})
    fetcher = SubtitleFetcher(FakeSource({"10": payload}), TTLCache())
    assert _fetch(fetcher, "10", SeasonEpisodeTarget(1, 2)) == EP2
