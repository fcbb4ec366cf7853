import datetime as _dt
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from models import UpdateInfo

logger = logging.getLogger(__name__)

APP_NAME = "WDSSuperMenu"
ENV_DATA_DIR = "WDS_SUPERMENU_DATA_DIR"
CONFIG_FILENAME = "supermenu_config.json"
CONFIG_KEY = "data_dir"
PREFERENCES_FILENAME = "preferences.json"

UPDATE_CHECK_INTERVAL = _dt.timedelta(days=1)
NEVER_CHECKED = _dt.datetime(2000, 1, 1)


@dataclass
class Preferences:
    auto_check_updates: bool = True
    skipped_version: str = ""
    last_update_check: _dt.datetime = field(default=NEVER_CHECKED)


def app_data_dir(app_name: str = APP_NAME) -> str:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
    else:
        base = os.getenv("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    if not base:
        base = os.path.expanduser("~")
    return os.path.join(base, app_name)


def _config_path() -> str:
    return os.path.join(app_data_dir(), CONFIG_FILENAME)


def _load_config() -> Dict[str, str]:
    path = _config_path()
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except (OSError, json.JSONDecodeError):
        return {}
    if not isinstance(payload, dict):
        return {}
    config: Dict[str, str] = {}
    for key, value in payload.items():
        if not isinstance(key, str):
            continue
        if isinstance(value, str):
            config[key] = value
    return config


def _save_config(config: Dict[str, str]) -> None:
    path = _config_path()
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(config, fh, indent=2)
    except OSError as exc:
        logger.warning("Failed to save %s: %s", path, exc)


def set_configured_data_dir(data_dir: str) -> None:
    if not isinstance(data_dir, str):
        return
    data_dir = data_dir.strip()
    if not data_dir:
        return
    config = _load_config()
    config[CONFIG_KEY] = data_dir
    _save_config(config)


def resolve_data_dir() -> str:
    override = os.getenv(ENV_DATA_DIR)
    if override:
        return override
    data_dir = str(_load_config().get(CONFIG_KEY) or "").strip()
    return data_dir or app_data_dir()


def _parse_timestamp(raw: object) -> Optional[_dt.datetime]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return _dt.datetime.fromisoformat(raw.strip())
    except ValueError:
        return None


def load_preferences(path: str) -> Preferences:
    prefs = Preferences()
    if not os.path.exists(path):
        return prefs
    try:
        with open(path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        logger.info("Ignoring unreadable preferences %s: %s", path, exc)
        return prefs
    if not isinstance(payload, dict):
        return prefs
    auto_check = payload.get("auto_check_updates")
    if isinstance(auto_check, bool):
        prefs.auto_check_updates = auto_check
    skipped = payload.get("skipped_version")
    if isinstance(skipped, str):
        prefs.skipped_version = skipped.strip()
    last_check = _parse_timestamp(payload.get("last_update_check"))
    if last_check is not None:
        prefs.last_update_check = last_check
    return prefs


def save_preferences(path: str, prefs: Preferences) -> None:
    payload = {
        "auto_check_updates": prefs.auto_check_updates,
        "skipped_version": prefs.skipped_version,
        "last_update_check": prefs.last_update_check.isoformat(timespec="seconds"),
    }
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
    except OSError as exc:
        logger.warning("Failed to save preferences %s: %s", path, exc)


def update_check_due(prefs: Preferences, now: Optional[_dt.datetime] = None) -> bool:
    now = now or _dt.datetime.now()
    last = prefs.last_update_check
    # Compare naive against naive; stored timestamps may carry an offset.
    if last.tzinfo is not None and now.tzinfo is None:
        last = last.astimezone().replace(tzinfo=None)
    elif last.tzinfo is None and now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)
    return now - last >= UPDATE_CHECK_INTERVAL


def should_notify(info: UpdateInfo, prefs: Preferences) -> bool:
    return info.available and info.version != prefs.skipped_version
