"""Exceptions raised by the contact mail transport."""


class ContactError(Exception):
    """Base class for contact service errors."""


class ConfigurationError(ContactError):
    """The mail transport cannot be built from the current configuration."""


class TransportError(ContactError):
    """A send (or verification) attempt failed at the transport level."""
