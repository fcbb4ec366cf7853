import logging
import os
from typing import Dict, List, Optional, Set

from models import AppEntry, InstallRecord
from registry import HKLM, RegistryStore, join_path
from utils import coerce_int, normalize_parent_directory


logger = logging.getLogger(__name__)

USER_DATA_PATH = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Installer\UserData"
PRODUCTS_PATH = r"SOFTWARE\Classes\Installer\Products"

DEFAULT_PUBLISHER = "WDS LLC"


class InstallScanner:
    """Finds where a publisher's products were installed, per Installer\\UserData."""

    VALUE_MAP = {
        "DisplayName": "name",
        "Publisher": "publisher",
        "InstallLocation": "install_location",
    }
    INVALID_LOCATION_TOKENS = {"unknown", "n/a", "na", "none", "null"}
    # The launcher registers itself under the same publisher; never list it as a game.
    EXCLUDED_DISPLAY_NAMES = {"WDS Super Menu"}

    def __init__(self, store: RegistryStore, excluded_names: Optional[Set[str]] = None) -> None:
        self.store = store
        self.excluded_names = set(self.EXCLUDED_DISPLAY_NAMES if excluded_names is None else excluded_names)

    def scan(self) -> List[AppEntry]:
        entries: List[AppEntry] = []
        try:
            sids = self.store.subkeys(HKLM, USER_DATA_PATH)
        except OSError as exc:
            logger.warning("Failed to open HKLM\\%s: %s", USER_DATA_PATH, exc)
            return entries
        for sid in sids:
            products_path = join_path(USER_DATA_PATH, sid, "Products")
            try:
                product_codes = self.store.subkeys(HKLM, products_path)
            except OSError:
                continue
            for code in product_codes:
                try:
                    entry = self._read_entry(join_path(products_path, code, "InstallProperties"))
                except (OSError, ValueError) as exc:
                    logger.info("Failed to process registry subkey %s: %s", code, exc)
                    continue
                if not entry.name and not entry.install_location:
                    continue
                entry.product_code = code
                entries.append(entry)
        return entries

    def _read_entry(self, path: str) -> AppEntry:
        values = self.store.values(HKLM, path)
        folded = {name.casefold(): value for name, value in values.items()}
        entry = AppEntry(name="")
        for value_name, target in self.VALUE_MAP.items():
            value = folded.get(value_name.casefold())
            if value is None:
                continue
            setattr(entry, target, value.as_text().strip())
        entry.install_location = self._normalize_install_location(entry.install_location)
        return entry

    @classmethod
    def _normalize_install_location(cls, raw_path: str) -> str:
        if not raw_path:
            return ""
        path = raw_path.strip().strip('"')
        if not path:
            return ""
        lower = path.casefold()
        if lower in cls.INVALID_LOCATION_TOKENS or lower.startswith("unknown"):
            return ""
        return os.path.expandvars(path)

    def find_installed_apps(self, publisher_filter: str = DEFAULT_PUBLISHER) -> List[AppEntry]:
        excluded = {name.casefold() for name in self.excluded_names}
        apps: List[AppEntry] = []
        for entry in self.scan():
            if entry.publisher != publisher_filter:
                continue
            if entry.name_key() in excluded:
                continue
            if not entry.install_location:
                continue
            apps.append(entry)
        return apps

    def find_install_parent_directories(self, publisher_filter: str = DEFAULT_PUBLISHER) -> Set[str]:
        parents: Set[str] = set()
        for entry in self.find_installed_apps(publisher_filter):
            parent = normalize_parent_directory(entry.install_location)
            if not parent:
                logger.debug("Skipping %s: no usable parent for %s", entry.name, entry.install_location)
                continue
            parents.add(parent)
        logger.info("Found %d install parent directories for %s", len(parents), publisher_filter)
        return parents

    def build_product_cache(self, require_icon: bool = True) -> Dict[str, InstallRecord]:
        cache: Dict[str, InstallRecord] = {}
        try:
            codes = self.store.subkeys(HKLM, PRODUCTS_PATH)
        except OSError as exc:
            logger.warning("Failed to open registry key HKLM\\%s: %s", PRODUCTS_PATH, exc)
            return cache
        for code in codes:
            try:
                record = self._read_product(join_path(PRODUCTS_PATH, code))
            except (OSError, ValueError) as exc:
                logger.info("Failed to process registry subkey %s: %s", code, exc)
                continue
            if record is None:
                continue
            if require_icon and not self._is_exe_file(record.icon_path):
                continue
            cache[record.key()] = record
            logger.debug("Cached product %s (icon %s)", record.product_name, record.icon_path)
        return cache

    def _read_product(self, path: str) -> Optional[InstallRecord]:
        values = self.store.values(HKLM, path)
        folded = {name.casefold(): value for name, value in values.items()}
        name_value = folded.get("productname")
        if name_value is None or not name_value.as_text().strip():
            return None
        icon_value = folded.get("producticon")
        version_value = folded.get("version")
        return InstallRecord(
            product_name=name_value.as_text().strip(),
            icon_path=icon_value.as_text().strip() if icon_value is not None else "",
            version_raw=coerce_int(version_value.data) if version_value is not None else None,
        )

    @staticmethod
    def _is_exe_file(path: str) -> bool:
        if not path or not path.casefold().endswith(".exe"):
            return False
        return os.path.isfile(path)


def lookup_product(folder_name: str, products: Dict[str, InstallRecord]) -> Optional[InstallRecord]:
    wanted = (folder_name or "").casefold()
    if not wanted:
        return None
    for key, record in products.items():
        if wanted in key:
            return record
    return None
