# flashback/errors.py


class FlashbackError(Exception):
    pass


class StoreError(FlashbackError):
    """Raised for any failure inside the message store."""


class StoreInitError(StoreError):
    """The store could not be opened or its schema could not be created."""


class SchemaVersionError(StoreInitError):
    def __init__(self, found: int, expected: int):
        super().__init__(f"Mismatching database schema version {found}; expect {expected}")
        self.found = found
        self.expected = expected


class QueryError(StoreError):
    """The full-text index rejected a search expression."""


class CommandError(FlashbackError):
    pass


class NotConfiguredError(FlashbackError):
    pass


class ChannelNotFoundError(FlashbackError):
    pass


class BotNotFoundError(FlashbackError):
    pass
