import json
import os
import threading
import time

import requests

from series import CACHE_FILENAME, DEFAULT_SERIES, SeriesCatalog

DAY = 24 * 60 * 60
REMOTE_TABLE = {"Panzer Campaigns": ["Kursk '43"], "Naval Campaigns": ["Jutland"]}


class _FakeResponse:
    def __init__(self, payload) -> None:
        self._payload = payload

    def raise_for_status(self) -> None:
        pass

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, payload=None, error=None) -> None:
        self.payload = payload
        self.error = error
        self.calls = 0
        self._lock = threading.Lock()

    def get(self, url, **kwargs):
        with self._lock:
            self.calls += 1
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.payload)


def _offline() -> _FakeSession:
    return _FakeSession(error=requests.ConnectionError("offline"))


def _write_cache(path, table, age: float = 0) -> None:
    path.write_text(json.dumps(table), encoding="utf-8")
    if age:
        stamp = time.time() - age
        os.utime(path, (stamp, stamp))


def test_falls_back_to_default_table_and_writes_cache(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    catalog = SeriesCatalog(str(cache), session=_offline())
    assert catalog.get_series_definitions() == DEFAULT_SERIES
    assert catalog.loaded_from == "default"
    assert json.loads(cache.read_text(encoding="utf-8")) == DEFAULT_SERIES

    # A second catalog picks the written cache up without going online.
    session = _FakeSession(payload=REMOTE_TABLE)
    again = SeriesCatalog(str(cache), session=session)
    assert again.get_series_definitions() == DEFAULT_SERIES
    assert again.loaded_from == "cache"
    assert session.calls == 0


def test_classify_with_default_table(tmp_path) -> None:
    catalog = SeriesCatalog(str(tmp_path / CACHE_FILENAME), session=_offline())
    assert catalog.classify_folder("Kursk '43") == "Panzer Campaigns"
    assert catalog.classify_folder("Campaign Gettysburg") == "Civil War Battles"
    assert catalog.classify_folder("Something Else") is None
    assert catalog.classify_folder("") is None


def test_remote_table_is_persisted(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    session = _FakeSession(payload=REMOTE_TABLE)
    catalog = SeriesCatalog(str(cache), session=session)
    assert catalog.get_series_definitions() == REMOTE_TABLE
    assert catalog.loaded_from == "remote"
    assert json.loads(cache.read_text(encoding="utf-8")) == REMOTE_TABLE
    assert session.calls == 1


def test_fresh_cache_skips_remote(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    _write_cache(cache, {"Cached": ["Kursk '43"]})
    session = _FakeSession(payload=REMOTE_TABLE)
    catalog = SeriesCatalog(str(cache), session=session)
    assert catalog.classify_folder("Kursk '43") == "Cached"
    assert session.calls == 0


def test_stale_cache_prefers_remote(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    _write_cache(cache, {"Cached": ["Kursk '43"]}, age=2 * DAY)
    session = _FakeSession(payload=REMOTE_TABLE)
    catalog = SeriesCatalog(str(cache), session=session)
    assert catalog.is_cache_stale()
    assert catalog.get_series_definitions() == REMOTE_TABLE
    assert session.calls == 1


def test_stale_cache_used_when_remote_fails(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    _write_cache(cache, {"Cached": ["Kursk '43"]})
    catalog = SeriesCatalog(str(cache), session=_offline(), clock=lambda: time.time() + 2 * DAY)
    assert catalog.get_series_definitions() == {"Cached": ["Kursk '43"]}
    assert catalog.loaded_from == "cache"


def test_malformed_remote_payload_falls_back(tmp_path) -> None:
    for payload in (["not", "a", "dict"], {"Broken": "not a list"}, {}, ValueError("bad json")):
        cache = tmp_path / CACHE_FILENAME
        if cache.exists():
            cache.unlink()
        catalog = SeriesCatalog(str(cache), session=_FakeSession(payload=payload))
        assert catalog.get_series_definitions() == DEFAULT_SERIES


def test_corrupt_fresh_cache_tries_remote_then_default(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    cache.write_text("{not json", encoding="utf-8")
    session = _FakeSession(payload=REMOTE_TABLE)
    catalog = SeriesCatalog(str(cache), session=session)
    assert catalog.get_series_definitions() == REMOTE_TABLE
    assert session.calls == 1

    cache.write_text("{not json", encoding="utf-8")
    offline = SeriesCatalog(str(cache), session=_offline())
    assert offline.get_series_definitions() == DEFAULT_SERIES


def test_forced_reload_replaces_cache(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    _write_cache(cache, {"Cached": ["Kursk '43"]})
    session = _FakeSession(payload=REMOTE_TABLE)
    catalog = SeriesCatalog(str(cache), session=session)
    assert "Cached" in catalog.get_series_definitions()
    catalog.reload(force_remote=True)
    assert catalog.get_series_definitions() == REMOTE_TABLE
    assert session.calls == 1


def test_plain_reload_is_stable(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    catalog = SeriesCatalog(str(cache), session=_offline())
    first = catalog.get_series_definitions()
    first_bytes = cache.read_bytes()
    catalog.reload()
    catalog.reload()
    assert catalog.get_series_definitions() == first
    assert cache.read_bytes() == first_bytes


def test_returned_table_is_a_copy(tmp_path) -> None:
    catalog = SeriesCatalog(str(tmp_path / CACHE_FILENAME), session=_offline())
    table = catalog.get_series_definitions()
    table["Panzer Campaigns"].clear()
    assert catalog.classify_folder("Kursk '43") == "Panzer Campaigns"


def test_concurrent_first_use_loads_once(tmp_path) -> None:
    session = _FakeSession(payload=REMOTE_TABLE)
    catalog = SeriesCatalog(str(tmp_path / CACHE_FILENAME), session=session)
    results = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append(catalog.get_series_definitions())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert session.calls == 1
    assert all(result == REMOTE_TABLE for result in results)


def test_overlapping_titles_resolve_by_series_name(tmp_path) -> None:
    table = {"Zulu": ["Kursk"], "Alpha": ["Kursk '43"]}
    cache = tmp_path / CACHE_FILENAME
    _write_cache(cache, table)
    catalog = SeriesCatalog(str(cache), session=_offline())
    assert catalog.classify_folder("Kursk '43") == "Alpha"


def test_cache_keeps_non_ascii_text(tmp_path) -> None:
    cache = tmp_path / CACHE_FILENAME
    catalog = SeriesCatalog(str(cache), session=_FakeSession(payload={"Napoléon": ["Eckmühl"]}))
    assert catalog.classify_folder("Campaign Eckmühl") == "Napoléon"
    assert "Eckmühl" in cache.read_text(encoding="utf-8")
