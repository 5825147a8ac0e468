"""Error types shared by the core and its call sites."""


class InvalidInputError(ValueError):
    """A required filter is missing or an identifier is malformed."""


class IntegrityConflictError(ValueError):
    """A mutation would break a referential or uniqueness rule."""


class AccessDeniedError(PermissionError):
    """The acting user is inactive or outside the unit's scope."""


class NotifierNotConfiguredError(RuntimeError):
    """Reports cannot be delivered because email is not configured."""
