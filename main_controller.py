import argparse
import datetime as _dt
import logging
import os
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, TypeVar

from classifier import EntryClassifier, FallbackPolicy
from discovery import find_entry, group_by_series, option_app_names, scan_game_folders
from import_export import export_entries
from models import GameFolderEntry, InstallRecord, SyncReport, UpdateInfo
from registry import RegistryStore, WinRegistry
from replicator import ConfigReplicator, ProgressCallback, SourceNotFoundError
from scanner import DEFAULT_PUBLISHER, InstallScanner
from series import CACHE_FILENAME, SeriesCatalog
from store import (
    PREFERENCES_FILENAME,
    load_preferences,
    resolve_data_dir,
    save_preferences,
    set_configured_data_dir,
    should_notify,
    update_check_due,
)
from updater import APP_VERSION, UpdateChecker


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEBUG_LOG_FILENAME = "debug.log"

T = TypeVar("T")


def configure_logging(data_dir: str, debug: bool = False) -> None:
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    # FileHandler is a StreamHandler subclass; only a plain console handler counts here.
    if not any(type(handler) is logging.StreamHandler for handler in root.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        stream.setLevel(logging.DEBUG if debug else logging.WARNING)
        root.addHandler(stream)
    if debug:
        try:
            os.makedirs(data_dir, exist_ok=True)
            handler = logging.FileHandler(os.path.join(data_dir, DEBUG_LOG_FILENAME), encoding="utf-8")
        except OSError as exc:
            logger.warning("Debug log unavailable: %s", exc)
            return
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


class MainController:
    # Registry reads, folder scans and the catalog fetch are all blocking; keep the pool small.
    MAX_WORKERS = 4

    def __init__(
        self,
        registry: Optional[RegistryStore] = None,
        data_dir: Optional[str] = None,
        catalog: Optional[SeriesCatalog] = None,
        update_checker: Optional[UpdateChecker] = None,
        policy: FallbackPolicy = FallbackPolicy.STEM_LENGTH,
        publisher: str = DEFAULT_PUBLISHER,
        current_version: str = APP_VERSION,
    ) -> None:
        self.registry = registry if registry is not None else WinRegistry()
        self.data_dir = data_dir or resolve_data_dir()
        self.publisher = publisher
        self.current_version = current_version
        self.prefs_path = os.path.join(self.data_dir, PREFERENCES_FILENAME)
        self.preferences = load_preferences(self.prefs_path)
        self.scanner = InstallScanner(self.registry)
        self.classifier = EntryClassifier(policy)
        self.catalog = catalog or SeriesCatalog(os.path.join(self.data_dir, CACHE_FILENAME))
        self.replicator = ConfigReplicator(self.registry)
        self.update_checker = update_checker or UpdateChecker()
        self.products: Dict[str, InstallRecord] = {}
        self.entries: List[GameFolderEntry] = []

    def load(self) -> List[GameFolderEntry]:
        with ThreadPoolExecutor(max_workers=self.MAX_WORKERS, thread_name_prefix="supermenu") as pool:
            products_job = pool.submit(self.scanner.build_product_cache)
            parents_job = pool.submit(self.scanner.find_install_parent_directories, self.publisher)
            series_job = pool.submit(self.catalog.get_series_definitions)
            self.products = self._join(products_job, {}, "product cache")
            parents = self._join(parents_job, set(), "install locations")
            self._join(series_job, {}, "series catalog")
        self.classifier.set_products(self.products.values())
        self.entries = scan_game_folders(parents, self.classifier, self.catalog, self.products)
        return self.entries

    @staticmethod
    def _join(job: "Future[T]", default: T, label: str) -> T:
        try:
            return job.result()
        except Exception as exc:  # pragma: no cover - workers already log their own I/O errors
            logger.exception("Loading %s failed: %s", label, exc)
            return default

    def grouped_entries(self) -> Dict[str, List[GameFolderEntry]]:
        return group_by_series(self.entries)

    def copy_settings_to_all(
        self,
        source_name: str,
        progress: Optional[ProgressCallback] = None,
        require_existing_key: bool = True,
    ) -> SyncReport:
        entry = find_entry(self.entries, source_name)
        source_app = entry.option_app_name if entry is not None else source_name
        if not source_app:
            raise SourceNotFoundError(source_name, f"{source_name} has no scenario game to copy settings from")
        targets = [name for name in option_app_names(self.entries) if name.casefold() != source_app.casefold()]
        logger.info("Copying settings from %s to %d game(s)", source_app, len(targets))
        return self.replicator.copy_options_to_many(
            source_app, targets, require_existing_key=require_existing_key, progress=progress
        )

    def refresh_series(self, force_remote: bool = True) -> None:
        self.catalog.reload(force_remote=force_remote)
        for entry in self.entries:
            entry.series = self.catalog.classify_folder(entry.folder_name)

    def check_for_updates(self, force: bool = False, now: Optional[_dt.datetime] = None) -> Optional[UpdateInfo]:
        prefs = self.preferences
        now = now or _dt.datetime.now()
        if not force:
            if not prefs.auto_check_updates:
                logger.info("Automatic update checks are disabled")
                return None
            if not update_check_due(prefs, now):
                logger.info("Skipping update check - already checked today")
                return None
        info = self.update_checker.check_for_update(self.current_version)
        prefs.last_update_check = now
        save_preferences(self.prefs_path, prefs)
        if force:
            return info
        return info if should_notify(info, prefs) else None

    def skip_version(self, version: str) -> None:
        self.preferences.skipped_version = version
        save_preferences(self.prefs_path, self.preferences)

    def set_auto_check_updates(self, enabled: bool) -> None:
        self.preferences.auto_check_updates = bool(enabled)
        save_preferences(self.prefs_path, self.preferences)


def _print_entries(groups: Dict[str, List[GameFolderEntry]], out: Callable[[str], None]) -> None:
    if not groups:
        out("No installed games found.")
        return
    for series, entries in groups.items():
        out(series)
        for entry in entries:
            roles = ", ".join(role.label for role, _path in entry.ordered_roles())
            out(f"  {entry.display_name()}: {roles}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wds-super-menu", description="List and manage installed WDS games.")
    parser.add_argument("--data-dir", help="Directory for the series cache, preferences and debug log.")
    parser.add_argument("--debug", action="store_true", help="Verbose logging to the console and debug.log.")
    parser.add_argument("--publisher", default=DEFAULT_PUBLISHER, help="Installer publisher to look for.")
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in FallbackPolicy],
        default=FallbackPolicy.STEM_LENGTH.value,
        help="How to recognise the main game executable when no name token matches.",
    )
    parser.add_argument("--copy-settings", metavar="GAME", help="Copy GAME's options to every other game.")
    parser.add_argument(
        "--add-missing",
        action="store_true",
        help="With --copy-settings, also create options the target games do not have yet.",
    )
    parser.add_argument("--check-updates", action="store_true", help="Check for a newer release now.")
    parser.add_argument("--refresh-series", action="store_true", help="Download the series catalog again.")
    parser.add_argument("--export", metavar="PATH", help="Export the game list (.csv, .xlsx or .json).")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.data_dir:
        set_configured_data_dir(args.data_dir)
    data_dir = args.data_dir or resolve_data_dir()
    configure_logging(data_dir, args.debug)
    try:
        controller = MainController(
            data_dir=data_dir, policy=FallbackPolicy(args.policy), publisher=args.publisher
        )
    except RuntimeError as exc:
        print(exc, file=sys.stderr)
        return 2

    if args.refresh_series:
        controller.catalog.reload(force_remote=True)
    controller.load()
    _print_entries(controller.grouped_entries(), print)

    if args.export:
        try:
            export_entries(args.export, controller.entries)
        except OSError as exc:
            print(f"Export failed: {exc}", file=sys.stderr)
            return 1
        print(f"Exported {len(controller.entries)} game(s) to {args.export}")

    if args.copy_settings:
        try:
            report = controller.copy_settings_to_all(
                args.copy_settings,
                progress=lambda name, index, total: print(f"[{index}/{total}] {name}"),
                require_existing_key=not args.add_missing,
            )
        except SourceNotFoundError as exc:
            print(exc, file=sys.stderr)
            return 1
        print(report.summary())
        if report.failure_count:
            return 1

    info = controller.check_for_updates(force=args.check_updates)
    if info is not None:
        if info.available:
            print(f"Update available: {info.version} ({info.download_url})")
        elif args.check_updates:
            print("You are using the latest version of WDS Super Menu.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
