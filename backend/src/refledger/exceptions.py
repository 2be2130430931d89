"""Exceptions raised by the referral, earnings and ad services."""


class RefledgerError(Exception):
    """Base exception for service-level failures."""


class WebhookSignatureError(RefledgerError):
    """Purchase notification signature is missing or invalid."""


class PayloadValidationError(RefledgerError):
    """A required field is missing or malformed."""


class NotFoundError(RefledgerError):
    """Referenced account, ad or order does not exist."""

    def __init__(self, entity: str, identifier: object):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class StorageUnavailableError(RefledgerError):
    """Backing store could not be reached. Safe to retry."""


class LedgerNotConfiguredError(RefledgerError):
    """Earnings cannot be recorded until tier rates are configured."""
