import logging
from typing import Callable, Dict, Iterable, List, Optional

from models import RegValue, SyncOutcome, SyncReport
from registry import HKCU, RegistryStore, join_path


logger = logging.getLogger(__name__)

DEFAULT_VENDOR = "WDS LLC"
OPTIONS_KEY = "Options"

ProgressCallback = Callable[[str, int, int], None]


class ReplicationError(Exception):
    def __init__(self, app_name: str, message: str) -> None:
        super().__init__(message)
        self.app_name = app_name


class SourceNotFoundError(ReplicationError):
    pass


class TargetNotFoundError(ReplicationError):
    pass


class TargetCreateError(ReplicationError):
    pass


class ConfigReplicator:
    """Copies per-user option values between games' Options subtrees."""

    def __init__(self, store: RegistryStore, vendor: str = DEFAULT_VENDOR) -> None:
        self.store = store
        self.vendor = vendor

    def options_path(self, app_name: str) -> str:
        return join_path("Software", self.vendor, app_name, OPTIONS_KEY)

    def list_option_apps(self) -> List[str]:
        vendor_path = join_path("Software", self.vendor)
        try:
            names = self.store.subkeys(HKCU, vendor_path)
        except OSError as exc:
            logger.warning("Failed to open registry key HKCU\\%s: %s", vendor_path, exc)
            return []
        return [name for name in names if self.store.key_exists(HKCU, self.options_path(name))]

    def read_options(self, app_name: str) -> Dict[str, RegValue]:
        try:
            return self.store.values(HKCU, self.options_path(app_name))
        except FileNotFoundError:
            raise SourceNotFoundError(app_name, f"Source application not found: {app_name}") from None
        except OSError as exc:
            raise SourceNotFoundError(app_name, f"Cannot read options for {app_name}: {exc}") from exc

    def copy_options(self, source_app: str, target_app: str, require_existing_key: bool = True) -> int:
        source_values = self.read_options(source_app)
        target_path = self.options_path(target_app)
        try:
            existing = {name.casefold() for name in self.store.values(HKCU, target_path)}
        except FileNotFoundError:
            if require_existing_key:
                raise TargetNotFoundError(target_app, f"Target application not found: {target_app}") from None
            existing = set()
            try:
                self.store.create_key(HKCU, target_path)
            except OSError as exc:
                raise TargetCreateError(target_app, f"Cannot create options for {target_app}: {exc}") from exc
        except OSError as exc:
            raise TargetNotFoundError(target_app, f"Cannot open options for {target_app}: {exc}") from exc

        written = 0
        for name, value in source_values.items():
            # Only touch options the target already understands.
            if require_existing_key and name.casefold() not in existing:
                continue
            self.store.write_value(HKCU, target_path, name, value)
            written += 1
        logger.debug("Copied %d option(s) from %s to %s", written, source_app, target_app)
        return written

    def copy_options_to_many(
        self,
        source_app: str,
        target_apps: Iterable[str],
        require_existing_key: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> SyncReport:
        targets = list(target_apps)
        report = SyncReport(source_name=source_app)
        total = len(targets)
        for index, target in enumerate(targets, start=1):
            report.outcomes.append(self._copy_one(source_app, target, require_existing_key))
            if progress is not None:
                progress(target, index, total)
        if report.failure_count:
            logger.warning(report.summary())
        else:
            logger.info(report.summary())
        return report

    def _copy_one(self, source_app: str, target: str, require_existing_key: bool) -> SyncOutcome:
        if target.casefold() == source_app.casefold():
            return SyncOutcome(target_name=target, succeeded=False, skipped=True)
        try:
            written = self.copy_options(source_app, target, require_existing_key)
        except (ReplicationError, OSError) as exc:
            logger.info("Failed to copy settings to %s: %s", target, exc)
            return SyncOutcome(target_name=target, succeeded=False, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error copying settings to %s", target)
            return SyncOutcome(target_name=target, succeeded=False, error=str(exc))
        return SyncOutcome(target_name=target, succeeded=True, values_written=written)
