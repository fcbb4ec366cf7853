import re
from typing import Iterable, List, Optional


_VOLUME_ROOT = re.compile(r"^[a-zA-Z]:$")


def unique_casefold(values: Iterable[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for value in values:
        name = str(value).strip()
        if not name:
            continue
        folded = name.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        result.append(name)
    return result


def strip_trailing_separators(path: str) -> str:
    return (path or "").rstrip("\\/")


def parent_directory(raw_path: str) -> str:
    """Return the parent of a Windows or POSIX style path, or blank if none."""
    path = strip_trailing_separators((raw_path or "").strip().strip('"').strip())
    if not path:
        return ""
    idx = max(path.rfind("\\"), path.rfind("/"))
    if idx < 0:
        return ""
    return path[:idx]


def normalize_directory(raw_path: str) -> str:
    return strip_trailing_separators((raw_path or "").strip().strip('"').strip()).casefold()


def is_volume_root(path: str) -> bool:
    return bool(_VOLUME_ROOT.match(strip_trailing_separators(path or "")))


def install_directory(install_location: str) -> str:
    path = (install_location or "").strip().strip('"').strip()
    # Some installers record the game executable rather than its folder.
    if strip_trailing_separators(path).casefold().endswith(".exe"):
        return parent_directory(path)
    return path


def normalize_parent_directory(install_location: str) -> str:
    """Casefolded parent of an install location; blank for volume roots."""
    parent = normalize_directory(parent_directory(install_directory(install_location)))
    if not parent or is_volume_root(parent):
        return ""
    return parent


def strip_version_prefix(raw: str) -> str:
    text = (raw or "").strip()
    if text[:1] in ("v", "V"):
        return text[1:]
    return text


def coerce_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 0)
    except ValueError:
        return None
