import datetime as _dt
import logging
from typing import Any, Dict, List, Optional

import requests
from packaging import version

from models import UpdateInfo
from utils import strip_version_prefix


logger = logging.getLogger(__name__)

APP_VERSION = "1.2.0"
UPDATE_CHECK_URL = "https://api.github.com/repos/sdporres/WDSSuperMenu/releases/latest"
API_TIMEOUT = 10
USER_AGENT = "WDS-Super-Menu-UpdateChecker"
NO_RELEASE_NOTES = "No release notes available."

INSTALLER_EXTENSIONS = (".exe", ".msi")
PLATFORM_KEYWORDS = ("windows",)


def parse_version(raw: str) -> version.Version:
    try:
        return version.parse(strip_version_prefix(str(raw or "")))
    except version.InvalidVersion:
        logger.debug("Unparseable version %r", raw)
        return version.Version("0.0.0.0")


def is_newer_version(latest: str, current: str) -> bool:
    return parse_version(latest) > parse_version(current)


def parse_published_at(raw: Any) -> Optional[_dt.datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _dt.datetime.fromisoformat(text)
    except ValueError:
        return None


def select_download_url(release: Dict[str, Any]) -> str:
    assets: List[Dict[str, Any]] = release.get("assets") or []
    for asset in assets:
        if not isinstance(asset, dict):
            continue
        name = str(asset.get("name") or "").casefold()
        url = str(asset.get("browser_download_url") or "")
        if not name or not url:
            continue
        if name.endswith(INSTALLER_EXTENSIONS) or any(word in name for word in PLATFORM_KEYWORDS):
            return url
    return str(release.get("html_url") or "")


class UpdateChecker:
    """Looks up the latest published release; callers decide how often to ask."""

    def __init__(
        self,
        url: str = UPDATE_CHECK_URL,
        session: Optional[requests.Session] = None,
        timeout: float = API_TIMEOUT,
    ) -> None:
        self.url = url
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def fetch_latest_release(self) -> Dict[str, Any]:
        response = self.session.get(
            self.url,
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/vnd.github+json"},
        )
        response.raise_for_status()
        release = response.json()
        if not isinstance(release, dict) or not release.get("tag_name"):
            raise ValueError("Release metadata has no tag_name")
        return release

    def check_for_update(self, current_version: str = APP_VERSION) -> UpdateInfo:
        logger.info("Checking for updates...")
        try:
            release = self.fetch_latest_release()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Error checking for updates: %s", exc)
            return UpdateInfo(available=False)

        tag_name = str(release["tag_name"])
        available = is_newer_version(tag_name, current_version)
        logger.info(
            "Current version: %s, latest version: %s, update available: %s",
            current_version,
            tag_name,
            available,
        )
        return UpdateInfo(
            available=available,
            version=tag_name,
            notes=str(release.get("body") or NO_RELEASE_NOTES),
            published_at=parse_published_at(release.get("published_at")),
            download_url=select_download_url(release),
        )
