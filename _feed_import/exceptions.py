class FeedImportError(Exception):
    """Base class for errors that end a whole import batch."""


class FeedError(FeedImportError):
    """The feed itself is unreadable: no header, missing columns, broken CSV."""


class ImportAborted(FeedImportError):
    """The store kept failing; the batch stopped early. ``summary`` holds the counts so far."""

    def __init__(self, message, summary=None):
        super().__init__(message)
        self.summary = summary or {}
