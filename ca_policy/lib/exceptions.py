"""Exception types raised by the CA configuration core."""


class CAPolicyError(Exception):
    """Base class for errors raised by ca_policy."""


class ConfigurationError(CAPolicyError, ValueError):
    """Invalid or contradictory configuration input.

    Raised for missing required fields, values of the wrong shape and
    mutually exclusive key-material sources.
    """


class NotFoundError(CAPolicyError, LookupError):
    """Lookup of a named object that is not registered."""
