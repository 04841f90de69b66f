"""Selection of the apps a scheduled run acts on.

Each backup mode maps to a predicate builder. The table is closed: a mode
without an entry is rejected rather than treated like ``ALL``.
"""

from typing import Callable, Collection, Dict, Iterable, List, Optional

from ..util.logging import get_logger
from .models import AppRecord, BackupMode, ScheduleConfig

logger = get_logger(__name__)

AppPredicate = Callable[[AppRecord], bool]
PackageFilter = Callable[[str], bool]


def custom_list_filter(enabled: bool, custom_list: Collection[str]) -> PackageFilter:
    """Membership test for the custom list; everything passes when it is disabled."""
    allowed = frozenset(custom_list)
    return lambda package_name: not enabled or package_name in allowed


def _all_apps(schedule: ScheduleConfig, allowed: PackageFilter) -> AppPredicate:
    return lambda app: allowed(app.package_name)


def _user_apps(schedule: ScheduleConfig, allowed: PackageFilter) -> AppPredicate:
    return lambda app: app.installed and not app.system and allowed(app.package_name)


def _system_apps(schedule: ScheduleConfig, allowed: PackageFilter) -> AppPredicate:
    return lambda app: app.installed and app.system and allowed(app.package_name)


def _new_or_updated_apps(schedule: ScheduleConfig, allowed: PackageFilter) -> AppPredicate:
    exclude_system = schedule.exclude_system

    def predicate(app: AppRecord) -> bool:
        return (
            app.installed
            and (not exclude_system or not app.system)
            and (not app.has_backup or app.updated)
            and allowed(app.package_name)
        )

    return predicate


MODE_PREDICATES: Dict[BackupMode, Callable[[ScheduleConfig, PackageFilter], AppPredicate]] = {
    BackupMode.ALL: _all_apps,
    BackupMode.USER: _user_apps,
    BackupMode.SYSTEM: _system_apps,
    BackupMode.NEW_OR_UPDATED: _new_or_updated_apps,
}


def build_predicate(
    schedule: ScheduleConfig,
    custom_list: Optional[Collection[str]] = None
) -> AppPredicate:
    """Build the selection predicate for a schedule.

    Args:
        schedule: Schedule whose mode and flags drive the selection
        custom_list: Allowed package names; defaults to the schedule's own list

    Raises:
        ValueError: If the schedule's mode has no predicate
    """
    if custom_list is None:
        custom_list = schedule.custom_list

    builder = MODE_PREDICATES.get(schedule.mode)
    if builder is None:
        raise ValueError(f"Unsupported backup mode: {schedule.mode!r}")

    return builder(schedule, custom_list_filter(schedule.enable_custom_list, custom_list))


def select_apps(
    inventory: Iterable[AppRecord],
    schedule: ScheduleConfig,
    custom_list: Optional[Collection[str]] = None
) -> List[AppRecord]:
    """Filter the inventory for a schedule, keeping inventory order."""
    predicate = build_predicate(schedule, custom_list)
    selected = [app for app in inventory if predicate(app)]
    logger.debug(f"Schedule {schedule.id} ({schedule.mode.value}) selected {len(selected)} apps")
    return selected
