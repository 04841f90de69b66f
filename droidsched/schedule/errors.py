"""Errors that end a scheduled run or reject one before it starts."""


class InventoryError(Exception):
    """The application inventory cannot be produced."""
    pass


class StorageLocationNotConfiguredError(InventoryError):
    """No backup location has been configured."""
    pass


class StorageUnavailableError(InventoryError):
    """The backup location or the device cannot be read."""
    pass


class ScheduleNotFoundError(KeyError):
    """No schedule with the requested id exists."""
    pass


class ScheduleAlreadyRunningError(RuntimeError):
    """A run for the same schedule is still in progress."""
    pass
