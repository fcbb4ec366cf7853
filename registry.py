from typing import Dict, List, Optional, Set, Tuple, Union

from models import RegValue, ValueKind

try:
    import winreg
except ImportError:  # pragma: no cover - Windows only
    winreg = None

HKLM = "HKLM"
HKCU = "HKCU"

HIVE_ALIASES = {
    "HKLM": HKLM,
    "HKEY_LOCAL_MACHINE": HKLM,
    "HKCU": HKCU,
    "HKEY_CURRENT_USER": HKCU,
}


def normalize_hive(hive: str) -> str:
    try:
        return HIVE_ALIASES[hive.upper()]
    except KeyError:
        raise ValueError(f"Unsupported registry hive: {hive}") from None


def split_path(path: str) -> List[str]:
    return [part for part in (path or "").replace("/", "\\").split("\\") if part]


def join_path(*parts: str) -> str:
    segments: List[str] = []
    for part in parts:
        segments.extend(split_path(part))
    return "\\".join(segments)


def value_kind(code: int) -> Union[ValueKind, int]:
    # Installers sometimes write private type codes; keep those as plain ints.
    try:
        return ValueKind(code)
    except ValueError:
        return int(code)


class RegistryStore:
    """Read/write access to a hierarchical key/value store.

    Paths are backslash separated and relative to a hive ("HKLM" or "HKCU").
    Missing keys raise FileNotFoundError, other failures raise OSError, the
    same way winreg reports them.
    """

    def subkeys(self, hive: str, path: str) -> List[str]:
        raise NotImplementedError

    def values(self, hive: str, path: str) -> Dict[str, RegValue]:
        raise NotImplementedError

    def create_key(self, hive: str, path: str) -> None:
        raise NotImplementedError

    def write_value(self, hive: str, path: str, name: str, value: RegValue) -> None:
        raise NotImplementedError

    def read_value(self, hive: str, path: str, name: str) -> Optional[RegValue]:
        try:
            values = self.values(hive, path)
        except OSError:
            return None
        wanted = name.casefold()
        for value_name, value in values.items():
            if value_name.casefold() == wanted:
                return value
        return None

    def read_string(self, hive: str, path: str, name: str) -> str:
        value = self.read_value(hive, path, name)
        if value is None:
            return ""
        return value.as_text().strip()

    def key_exists(self, hive: str, path: str) -> bool:
        try:
            self.values(hive, path)
        except OSError:
            return False
        return True


class WinRegistry(RegistryStore):
    """Registry access through winreg, pinned to one registry view."""

    def __init__(self, view: Optional[int] = None) -> None:
        if winreg is None:
            raise RuntimeError("The Windows registry is only available on Windows")
        # KEY_WOW64_64KEY reads the native view even from a 32-bit interpreter.
        self.view = winreg.KEY_WOW64_64KEY if view is None else view
        self._hives = {HKLM: winreg.HKEY_LOCAL_MACHINE, HKCU: winreg.HKEY_CURRENT_USER}

    def _open(self, hive: str, path: str, access: int):
        return winreg.OpenKey(self._hives[normalize_hive(hive)], join_path(path), 0, access | self.view)

    def subkeys(self, hive: str, path: str) -> List[str]:
        names: List[str] = []
        with self._open(hive, path, winreg.KEY_READ) as key:
            for idx in range(winreg.QueryInfoKey(key)[0]):
                try:
                    names.append(winreg.EnumKey(key, idx))
                except OSError:
                    continue
        return names

    def values(self, hive: str, path: str) -> Dict[str, RegValue]:
        result: Dict[str, RegValue] = {}
        with self._open(hive, path, winreg.KEY_READ) as key:
            for idx in range(winreg.QueryInfoKey(key)[1]):
                try:
                    name, data, kind = winreg.EnumValue(key, idx)
                except OSError:
                    continue
                result[name] = RegValue(data, value_kind(kind))
        return result

    def create_key(self, hive: str, path: str) -> None:
        key = winreg.CreateKeyEx(
            self._hives[normalize_hive(hive)], join_path(path), 0, winreg.KEY_WRITE | self.view
        )
        key.Close()

    def write_value(self, hive: str, path: str, name: str, value: RegValue) -> None:
        with self._open(hive, path, winreg.KEY_SET_VALUE) as key:
            winreg.SetValueEx(key, name, 0, int(value.kind), value.data)


class _Node:
    __slots__ = ("name", "children", "values")

    def __init__(self, name: str) -> None:
        self.name = name
        self.children: Dict[str, "_Node"] = {}
        self.values: Dict[str, Tuple[str, RegValue]] = {}


RawValue = Union[RegValue, str, int, bytes]


class MemoryRegistry(RegistryStore):
    """In-process store with registry semantics (case-insensitive names)."""

    def __init__(self) -> None:
        self._roots: Dict[str, _Node] = {HKLM: _Node(HKLM), HKCU: _Node(HKCU)}
        self._denied: Set[Tuple[str, str]] = set()

    def _find(self, hive: str, path: str) -> Optional[_Node]:
        node = self._roots[normalize_hive(hive)]
        for part in split_path(path):
            node = node.children.get(part.casefold())
            if node is None:
                return None
        return node

    def _require(self, hive: str, path: str) -> _Node:
        node = self._find(hive, path)
        if node is None:
            raise FileNotFoundError(f"Registry key not found: {normalize_hive(hive)}\\{join_path(path)}")
        return node

    def _check_writable(self, hive: str, path: str) -> None:
        target = split_path(path)
        folded = [part.casefold() for part in target]
        for denied_hive, denied_path in self._denied:
            if denied_hive != normalize_hive(hive):
                continue
            prefix = denied_path.split("\\") if denied_path else []
            if folded[: len(prefix)] == prefix:
                raise PermissionError(f"Access denied: {denied_hive}\\{join_path(path)}")

    def deny_writes(self, hive: str, path: str) -> None:
        self._denied.add((normalize_hive(hive), join_path(path).casefold()))

    def subkeys(self, hive: str, path: str) -> List[str]:
        return [child.name for child in self._require(hive, path).children.values()]

    def values(self, hive: str, path: str) -> Dict[str, RegValue]:
        return {name: value for name, value in self._require(hive, path).values.values()}

    def create_key(self, hive: str, path: str) -> None:
        if self._find(hive, path) is not None:
            return
        self._check_writable(hive, path)
        node = self._roots[normalize_hive(hive)]
        for part in split_path(path):
            child = node.children.get(part.casefold())
            if child is None:
                child = _Node(part)
                node.children[part.casefold()] = child
            node = child

    def write_value(self, hive: str, path: str, name: str, value: RegValue) -> None:
        node = self._require(hive, path)
        self._check_writable(hive, path)
        node.values[name.casefold()] = (name, value)

    def add_key(self, hive: str, path: str, values: Optional[Dict[str, RawValue]] = None) -> None:
        self.create_key(hive, path)
        for name, raw in (values or {}).items():
            self.write_value(hive, path, name, _coerce(raw))

    def delete_key(self, hive: str, path: str) -> None:
        parts = split_path(path)
        parent = self._require(hive, "\\".join(parts[:-1]))
        parent.children.pop(parts[-1].casefold(), None)


def _coerce(raw: RawValue) -> RegValue:
    if isinstance(raw, RegValue):
        return raw
    if isinstance(raw, bool):
        return RegValue.dword(int(raw))
    if isinstance(raw, int):
        return RegValue.dword(raw)
    if isinstance(raw, bytes):
        return RegValue.binary(raw)
    return RegValue.string(raw)
