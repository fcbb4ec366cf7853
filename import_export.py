import csv
import datetime as _dt
import json
from typing import Dict, List

from openpyxl import Workbook

from models import GameFolderEntry, Role


CSV_HEADERS = [
    "Folder",
    "Series",
    "Version",
    "Path",
    "Saves",
    "Manuals",
] + [role.label for role in Role.ordered()]


def _row(entry: GameFolderEntry) -> List[str]:
    return [
        entry.folder_name,
        entry.series or "",
        entry.version,
        entry.path,
        entry.saves_path or "",
        entry.manuals_path or "",
    ] + [entry.executable_roles.get(role, "") for role in Role.ordered()]


def export_csv(file_path: str, entries: List[GameFolderEntry]) -> None:
    with open(file_path, "w", newline="", encoding="utf-8") as csv_file:
        writer = csv.writer(csv_file)
        writer.writerow(CSV_HEADERS)
        for entry in entries:
            writer.writerow(_row(entry))


def export_xlsx(file_path: str, entries: List[GameFolderEntry]) -> None:
    book = Workbook(write_only=True)
    games_sheet = book.create_sheet("Games")
    games_sheet.append(CSV_HEADERS)
    for entry in entries:
        games_sheet.append(_row(entry))

    series_sheet = book.create_sheet("Series")
    series_sheet.append(["Series", "Games"])
    counts: Dict[str, int] = {}
    for entry in entries:
        name = entry.series or ""
        counts[name] = counts.get(name, 0) + 1
    for name in sorted(counts, key=str.casefold):
        series_sheet.append([name, counts[name]])
    book.save(file_path)


def save_json(file_path: str, entries: List[GameFolderEntry]) -> None:
    payload = {
        "exported_at": _dt.datetime.now().isoformat(timespec="seconds"),
        "games": [entry.to_dict() for entry in entries],
    }
    with open(file_path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)


def load_json(file_path: str) -> List[GameFolderEntry]:
    with open(file_path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    items = data.get("games") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise ValueError("JSON file does not contain a game list.")
    return _entries_from_json(items)


def export_entries(file_path: str, entries: List[GameFolderEntry]) -> None:
    lower = file_path.casefold()
    if lower.endswith(".xlsx"):
        export_xlsx(file_path, entries)
    elif lower.endswith(".json"):
        save_json(file_path, entries)
    else:
        export_csv(file_path, entries)


def _entries_from_json(items: List[Dict[str, object]]) -> List[GameFolderEntry]:
    entries: List[GameFolderEntry] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        folder_name = str(item.get("folder_name") or "").strip()
        if not folder_name:
            continue
        roles: Dict[Role, str] = {}
        raw_roles = item.get("executables")
        if isinstance(raw_roles, dict):
            for label, path in raw_roles.items():
                role = Role.from_label(str(label))
                if role is None or not isinstance(path, str) or not path.strip():
                    continue
                roles[role] = path.strip()
        entries.append(
            GameFolderEntry(
                folder_name=folder_name,
                path=str(item.get("path") or "").strip(),
                executable_roles=roles,
                saves_path=str(item.get("saves_path") or "").strip() or None,
                manuals_path=str(item.get("manuals_path") or "").strip() or None,
                series=str(item.get("series") or "").strip() or None,
                version=str(item.get("version") or "").strip(),
                icon_path=str(item.get("icon_path") or "").strip(),
            )
        )
    return entries
