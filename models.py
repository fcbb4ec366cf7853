from dataclasses import dataclass, field
import datetime as _dt
import enum
import os
from typing import Any, Dict, List, Optional, Tuple, Union


class Role(enum.Enum):
    # Value is (display precedence, label); lower precedence is shown first.
    SCENARIO_GAME = (1, "Scenario Game")
    CAMPAIGN_GAME = (2, "Campaign Game")
    SCENARIO_EDITOR = (3, "Scenario Editor")
    CAMPAIGN_EDITOR = (4, "Campaign Editor")

    @property
    def order(self) -> int:
        return self.value[0]

    @property
    def label(self) -> str:
        return self.value[1]

    @classmethod
    def ordered(cls) -> List["Role"]:
        return sorted(cls, key=lambda role: role.order)

    @classmethod
    def from_label(cls, label: str) -> Optional["Role"]:
        wanted = (label or "").strip().casefold()
        for role in cls:
            if role.label.casefold() == wanted or role.name.casefold() == wanted:
                return role
        return None


class ValueKind(enum.IntEnum):
    """Registry value type codes (same numbers as the winreg REG_* constants)."""

    NONE = 0
    SZ = 1
    EXPAND_SZ = 2
    BINARY = 3
    DWORD = 4
    DWORD_BIG_ENDIAN = 5
    LINK = 6
    MULTI_SZ = 7
    RESOURCE_LIST = 8
    FULL_RESOURCE_DESCRIPTOR = 9
    RESOURCE_REQUIREMENTS_LIST = 10
    QWORD = 11


@dataclass(frozen=True)
class RegValue:
    data: Any
    kind: Union[ValueKind, int] = ValueKind.SZ

    @classmethod
    def string(cls, text: str) -> "RegValue":
        return cls(str(text), ValueKind.SZ)

    @classmethod
    def dword(cls, number: int) -> "RegValue":
        return cls(int(number), ValueKind.DWORD)

    @classmethod
    def expandable(cls, text: str) -> "RegValue":
        return cls(str(text), ValueKind.EXPAND_SZ)

    @classmethod
    def binary(cls, payload: bytes) -> "RegValue":
        return cls(bytes(payload), ValueKind.BINARY)

    def as_text(self) -> str:
        if self.data is None:
            return ""
        if isinstance(self.data, bytes):
            return self.data.hex()
        if isinstance(self.data, list):
            return "\n".join(str(item) for item in self.data)
        return str(self.data)


@dataclass(frozen=True)
class InstallRecord:
    product_name: str
    icon_path: str = ""
    version_raw: Optional[int] = None

    def key(self) -> str:
        return self.product_name.casefold()

    @property
    def version(self) -> str:
        if self.version_raw is None:
            return ""
        value = int(self.version_raw) & 0xFFFFFFFF
        major = (value >> 24) & 0xFF
        minor = (value >> 16) & 0xFF
        patch = value & 0xFFFF
        return f"{major}.{minor:02d}.{patch}"

    @property
    def icon_file_name(self) -> str:
        return os.path.basename((self.icon_path or "").replace("\\", "/"))


@dataclass
class AppEntry:
    """One installed product as recorded under Installer\\UserData."""

    name: str
    publisher: str = ""
    install_location: str = ""
    product_code: str = ""

    def name_key(self) -> str:
        return (self.name or "").casefold()


@dataclass
class GameFolderEntry:
    folder_name: str
    path: str
    executable_roles: Dict[Role, str] = field(default_factory=dict)
    saves_path: Optional[str] = None
    manuals_path: Optional[str] = None
    series: Optional[str] = None
    version: str = ""
    icon_path: str = ""

    @property
    def option_app_name(self) -> str:
        # Per-user options live under the scenario game's executable stem.
        exe = self.executable_roles.get(Role.SCENARIO_GAME)
        if not exe:
            return ""
        return os.path.splitext(os.path.basename(exe.replace("\\", "/")))[0]

    def ordered_roles(self) -> List[Tuple[Role, str]]:
        return [(role, self.executable_roles[role]) for role in Role.ordered() if role in self.executable_roles]

    def display_name(self) -> str:
        if self.version:
            return f"{self.folder_name} ({self.version})"
        return self.folder_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folder_name": self.folder_name,
            "path": self.path,
            "series": self.series or "",
            "version": self.version,
            "icon_path": self.icon_path,
            "saves_path": self.saves_path or "",
            "manuals_path": self.manuals_path or "",
            "executables": {role.label: path for role, path in self.ordered_roles()},
        }


@dataclass
class SyncOutcome:
    target_name: str
    succeeded: bool
    error: Optional[str] = None
    skipped: bool = False
    values_written: int = 0


@dataclass
class SyncReport:
    source_name: str
    outcomes: List[SyncOutcome] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.outcomes if item.succeeded)

    @property
    def failure_count(self) -> int:
        return sum(1 for item in self.outcomes if not item.succeeded and not item.skipped)

    @property
    def failed_targets(self) -> List[str]:
        return [item.target_name for item in self.outcomes if not item.succeeded and not item.skipped]

    def summary(self) -> str:
        text = f"Copied settings from {self.source_name} to {self.success_count} game(s)"
        if self.failure_count:
            text += f"; {self.failure_count} failed: {', '.join(self.failed_targets)}"
        return text


@dataclass
class UpdateInfo:
    available: bool = False
    version: str = ""
    notes: str = ""
    published_at: Optional[_dt.datetime] = None
    download_url: str = ""
