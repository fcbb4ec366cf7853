import logging
import os
from typing import Dict, Iterable, List, Optional

from classifier import EntryClassifier
from models import GameFolderEntry, InstallRecord, Role
from scanner import lookup_product
from series import SeriesCatalog
from utils import unique_casefold


logger = logging.getLogger(__name__)

SAVES_DIR = "saves"
MANUALS_DIR = "manuals"
UNKNOWN_SERIES = "Other"


def scan_game_folders(
    parent_dirs: Iterable[str],
    classifier: EntryClassifier,
    catalog: Optional[SeriesCatalog] = None,
    products: Optional[Dict[str, InstallRecord]] = None,
) -> List[GameFolderEntry]:
    entries: List[GameFolderEntry] = []
    for parent in sorted(parent_dirs):
        try:
            with os.scandir(parent) as it:
                folders = [entry.path for entry in it if entry.is_dir(follow_symlinks=False)]
        except OSError as exc:
            logger.warning("Error processing directory %s: %s", parent, exc)
            continue
        for folder in sorted(folders, key=str.casefold):
            entry = scan_game_folder(folder, classifier, catalog, products)
            if entry is not None:
                entries.append(entry)
    logger.info("Discovered %d game folder(s)", len(entries))
    return entries


def scan_game_folder(
    folder: str,
    classifier: EntryClassifier,
    catalog: Optional[SeriesCatalog] = None,
    products: Optional[Dict[str, InstallRecord]] = None,
) -> Optional[GameFolderEntry]:
    folder_name = os.path.basename(folder.rstrip("\\/"))
    try:
        with os.scandir(folder) as it:
            files = sorted(
                (entry for entry in it if entry.is_file() and entry.name.casefold().endswith(".exe")),
                key=lambda entry: entry.name.casefold(),
            )
            executables = [(entry.name, entry.path) for entry in files]
    except OSError as exc:
        logger.info("Skipping %s: %s", folder, exc)
        return None

    roles: Dict[Role, str] = {}
    for name, path in executables:
        role = classifier.classify_executable(name)
        if role is None or role in roles:
            continue
        roles[role] = path
    if not roles:
        logger.debug("No launchable executables in %s", folder)
        return None

    entry = GameFolderEntry(folder_name=folder_name, path=folder, executable_roles=roles)
    saves = os.path.join(folder, SAVES_DIR)
    if os.path.isdir(saves):
        entry.saves_path = saves
    manuals = os.path.join(folder, MANUALS_DIR)
    if os.path.isdir(manuals):
        entry.manuals_path = manuals
    if catalog is not None:
        entry.series = catalog.classify_folder(folder_name)
    if products:
        record = lookup_product(folder_name, products)
        if record is not None:
            entry.version = record.version
            entry.icon_path = record.icon_path
    return entry


def group_by_series(entries: Iterable[GameFolderEntry]) -> Dict[str, List[GameFolderEntry]]:
    groups: Dict[str, List[GameFolderEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.series or UNKNOWN_SERIES, []).append(entry)
    ordered = sorted((name for name in groups if name != UNKNOWN_SERIES), key=str.casefold)
    if UNKNOWN_SERIES in groups:
        ordered.append(UNKNOWN_SERIES)
    return {name: sorted(groups[name], key=lambda item: item.folder_name.casefold()) for name in ordered}


def option_app_names(entries: Iterable[GameFolderEntry]) -> List[str]:
    return unique_casefold(entry.option_app_name for entry in entries if entry.option_app_name)


def find_entry(entries: Iterable[GameFolderEntry], name: str) -> Optional[GameFolderEntry]:
    wanted = (name or "").casefold()
    for entry in entries:
        if entry.folder_name.casefold() == wanted or entry.option_app_name.casefold() == wanted:
            return entry
    return None
