"""Error taxonomy shared by the store, the commands and the CLI."""


class TskError(Exception):
    """Base class for every error surfaced to the user."""


class NotFoundError(TskError):
    """A referenced task, project or tag has no record."""


class ValidationError(TskError):
    """Empty required field, malformed date, unparseable priority or pattern."""


class ConstraintError(TskError):
    """Operation forbidden by a data invariant (e.g. deleting the Inbox)."""


class GatewayError(TskError):
    """The underlying storage operation failed."""
