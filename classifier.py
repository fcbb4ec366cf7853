import enum
import os
from typing import Iterable, List, Optional, Tuple

from models import InstallRecord, Role


# Order matters: "campedit.exe" must resolve to the campaign editor, not the scenario editor.
ROLE_TOKENS: List[Tuple[str, Role]] = [
    ("camp", Role.CAMPAIGN_EDITOR),
    ("edit", Role.SCENARIO_EDITOR),
    ("start", Role.CAMPAIGN_GAME),
]

EXECUTABLE_EXTENSION = ".exe"
SHORT_STEM_LENGTH = 4


class FallbackPolicy(enum.Enum):
    STEM_LENGTH = "stem_length"
    INSTALL_RECORD = "install_record"


class EntryClassifier:
    """Maps a game folder's executables to the role they play in the launcher."""

    def __init__(
        self,
        policy: FallbackPolicy = FallbackPolicy.STEM_LENGTH,
        products: Optional[Iterable[InstallRecord]] = None,
        tokens: Optional[List[Tuple[str, Role]]] = None,
    ) -> None:
        self.policy = policy
        self.tokens = list(ROLE_TOKENS if tokens is None else tokens)
        self._icon_names = set()
        self._product_names: List[str] = []
        self.set_products(products or [])

    def set_products(self, products: Iterable[InstallRecord]) -> None:
        products = list(products)
        self._icon_names = {record.icon_file_name.casefold() for record in products if record.icon_path}
        self._product_names = [record.key() for record in products]

    def classify_executable(self, file_name: str) -> Optional[Role]:
        name = os.path.basename((file_name or "").replace("\\", "/")).casefold()
        stem, ext = os.path.splitext(name)
        if not stem or ext != EXECUTABLE_EXTENSION:
            return None
        for token, role in self.tokens:
            if token in name:
                return role
        if self._is_main_game(name, stem):
            return Role.SCENARIO_GAME
        return None

    def _is_main_game(self, name: str, stem: str) -> bool:
        if self.policy is FallbackPolicy.INSTALL_RECORD:
            if name in self._icon_names:
                return True
            return any(stem in product for product in self._product_names)
        return len(stem) <= SHORT_STEM_LENGTH or "demo" in name
