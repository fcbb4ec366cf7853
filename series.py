"""Series (product lineage) catalog.

The table maps a series name to the title fragments of the games that belong
to it. It is loaded once per catalog from the first tier that works:

1. the remote catalog, when the local cache is missing or older than a day;
2. the local cache file;
3. the table embedded below, which is then written to the cache path.

Loads and reloads run under a single lock and swap the whole table in one
assignment, so readers see either the old table or the new one.
"""

import json
import logging
import os
import threading
import time
from typing import Callable, Dict, List, Optional

import requests


logger = logging.getLogger(__name__)

DEFAULT_SERIES_URL = "https://raw.githubusercontent.com/sdporres/WDSSuperMenu/main/series.json"
CACHE_FILENAME = "series_catalog.json"
CACHE_MAX_AGE_SECONDS = 24 * 60 * 60
REMOTE_TIMEOUT_SECONDS = 10
USER_AGENT = "WDS-Super-Menu-SeriesCatalog"

SeriesTable = Dict[str, List[str]]

DEFAULT_SERIES: SeriesTable = {
    "Panzer Campaigns": [
        "Budapest '45",
        "Bulge '44",
        "El Alamein '42",
        "France '40",
        "Japan '45",
        "Japan '46",
        "Kharkov '42",
        "Kharkov '43",
        "Kiev '43",
        "Korsun '44",
        "Kursk '43",
        "Market-Garden '44",
        "Minsk '44",
        "Mius '43",
        "Moscow '41",
        "Moscow '42",
        "Normandy '44",
        "Orel '43",
        "Philippines '44",
        "Poland '39",
        "Rumyantsev '43",
        "Rzhev '42",
        "Salerno '43",
        "Scheldt '44",
        "Sealion '40",
        "Sicily '43",
        "Smolensk '41",
        "Smolensk '43",
        "Spring Awakening '45",
        "Stalingrad '42",
        "Tobruk '41",
        "Tunisia '43",
    ],
    "Musket and Pike": [
        "Great Northern War",
        "Renaissance",
        "Seven Years War",
        "Thirty Years War",
        "War of the Austrian Succession",
    ],
    "Napoleonic Battles": [
        "Bonaparte's Peninsular War",
        "Campaign 1814",
        "Campaign Austerlitz",
        "Campaign Bautzen",
        "Campaign Eckmuhl",
        "Campaign Eylau",
        "Campaign Jena",
        "Campaign Leipzig",
        "Campaign Marengo",
        "Campaign Wagram",
        "Campaign Waterloo",
        "Napoleon's Russian Campaign",
        "Republican Bayonets on the Rhine",
        "The Final Struggle",
        "Wellington's Peninsular War",
    ],
    "Civil War Battles": [
        "Campaign Antietam",
        "Campaign Atlanta",
        "Campaign Chancellorsville",
        "Campaign Chickamauga",
        "Campaign Corinth",
        "Campaign Franklin",
        "Campaign Gettysburg",
        "Campaign Overland",
        "Campaign Ozark",
        "Campaign Peninsula",
        "Campaign Petersburg",
        "Campaign Shenandoah",
        "Campaign Shiloh",
        "Campaign Vicksburg",
        "Civil War Battles Demo",
        "Forgotten Campaigns",
    ],
    "Naval Campaigns": [
        "Guadalcanal Naval Battles",
        "Jutland",
        "Kriegsmarine",
        "Midway",
        "Tsushima",
        "Wolfpack",
    ],
    "Early American Wars": [
        "Campaign 1776",
        "Little Big Horn",
        "Mexican-American War",
        "The French and Indian War",
        "The War of 1812",
    ],
    "Panzer Battles": [
        "Battles of Kursk - Southern Flank",
        "Battles of Normandy",
        "Battles of North Africa 1941",
        "Panzer Battles Demo",
    ],
    "First World War Campaigns": [
        "East Prussia '14",
        "France '14",
        "Serbia '14",
    ],
    "Strategic War": [
        "The First Blitzkrieg",
        "War on the Southern Front",
    ],
    "Modern Air Power": [
        "War Over The Mideast",
        "War Over Vietnam",
        "Modern Air Power Demo",
    ],
    "Sword and Siege": [
        "Sword & Siege Demo",
        "Crusades: Book I",
    ],
    "Modern Campaigns": [
        "Danube Front '85",
        "Fulda Gap '85",
        "Korea '85",
        "Middle East '67",
        "North German Plain '85",
        "Quang Tri '72",
    ],
}


class SeriesDataError(ValueError):
    pass


def parse_series_table(payload) -> SeriesTable:
    if not isinstance(payload, dict):
        raise SeriesDataError("Series catalog must be a JSON object")
    table: SeriesTable = {}
    for name, titles in payload.items():
        if not isinstance(name, str) or not name.strip():
            raise SeriesDataError(f"Invalid series name: {name!r}")
        if not isinstance(titles, list):
            raise SeriesDataError(f"Titles for {name!r} must be a list")
        cleaned: List[str] = []
        for title in titles:
            if not isinstance(title, str):
                raise SeriesDataError(f"Invalid title in {name!r}: {title!r}")
            if title.strip():
                cleaned.append(title)
        table[name] = cleaned
    if not table:
        raise SeriesDataError("Series catalog is empty")
    return table


def copy_table(table: SeriesTable) -> SeriesTable:
    return {name: list(titles) for name, titles in table.items()}


class SeriesCatalog:
    def __init__(
        self,
        cache_path: str,
        url: str = DEFAULT_SERIES_URL,
        session: Optional[requests.Session] = None,
        default_table: Optional[SeriesTable] = None,
        max_age_seconds: float = CACHE_MAX_AGE_SECONDS,
        timeout: float = REMOTE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_path = cache_path
        self.url = url
        self.session = session if session is not None else requests.Session()
        self.default_table = copy_table(DEFAULT_SERIES if default_table is None else default_table)
        self.max_age_seconds = max_age_seconds
        self.timeout = timeout
        self.clock = clock
        self.loaded_from = ""
        self.loaded_at: Optional[float] = None
        self._table: Optional[SeriesTable] = None
        self._lock = threading.Lock()

    def get_series_definitions(self) -> SeriesTable:
        table = self._table
        if table is None:
            with self._lock:
                if self._table is None:
                    self._table = self._load()
                table = self._table
        return copy_table(table)

    def reload(self, force_remote: bool = False) -> None:
        with self._lock:
            if force_remote:
                self._delete_cache()
            self._table = self._load()

    def classify_folder(self, folder_name: str) -> Optional[str]:
        name = (folder_name or "").strip().casefold()
        if not name:
            return None
        table = self.get_series_definitions()
        # Sorted so the answer does not depend on the order the remote catalog uses.
        for series in sorted(table, key=str.casefold):
            if any(title.casefold() in name for title in table[series]):
                return series
        return None

    def is_cache_stale(self) -> bool:
        try:
            modified = os.path.getmtime(self.cache_path)
        except OSError:
            return True
        return self.clock() - modified > self.max_age_seconds

    def _load(self) -> SeriesTable:
        tried_remote = False
        if self.is_cache_stale():
            tried_remote = True
            table = self._fetch_remote()
            if table is not None:
                self._save_cache(table)
                return self._loaded(table, "remote")
        table = self._read_cache()
        if table is not None:
            return self._loaded(table, "cache")
        if not tried_remote:
            table = self._fetch_remote()
            if table is not None:
                self._save_cache(table)
                return self._loaded(table, "remote")
        logger.warning("Series catalog unavailable; using the built-in table")
        table = copy_table(self.default_table)
        self._save_cache(table)
        return self._loaded(table, "default")

    def _loaded(self, table: SeriesTable, source: str) -> SeriesTable:
        self.loaded_from = source
        self.loaded_at = self.clock()
        logger.info("Loaded %d series from %s", len(table), source)
        return table

    def _fetch_remote(self) -> Optional[SeriesTable]:
        try:
            response = self.session.get(self.url, timeout=self.timeout, headers={"User-Agent": USER_AGENT})
            response.raise_for_status()
            return parse_series_table(response.json())
        except (requests.RequestException, ValueError) as exc:
            logger.info("Remote series catalog failed (%s): %s", self.url, exc)
            return None

    def _read_cache(self) -> Optional[SeriesTable]:
        if not os.path.exists(self.cache_path):
            return None
        try:
            with open(self.cache_path, "r", encoding="utf-8") as fh:
                return parse_series_table(json.load(fh))
        except (OSError, ValueError) as exc:
            logger.info("Series cache %s unreadable: %s", self.cache_path, exc)
            return None

    def _save_cache(self, table: SeriesTable) -> None:
        tmp_path = f"{self.cache_path}.tmp"
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.cache_path)), exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as fh:
                json.dump(table, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.cache_path)
        except OSError as exc:
            logger.warning("Failed to write series cache %s: %s", self.cache_path, exc)

    def _delete_cache(self) -> None:
        try:
            os.remove(self.cache_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to delete series cache %s: %s", self.cache_path, exc)
