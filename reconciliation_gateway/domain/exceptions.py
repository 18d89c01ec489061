"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Referenced record is absent, soft-deleted, or owned by another tenant.

    The three causes are deliberately reported the same way so callers cannot
    probe for records that belong to other tenants.
    """

    pass


class ConflictError(DomainException):
    """Operation would leave more than one MATCHED record on either side"""

    pass


# Messages shared by the service and its tests
BANK_FEED_NOT_FOUND = "Bank feed transaction not found"
TRANSACTION_NOT_FOUND = "Transaction not found"
MATCH_NOT_FOUND = "Match not found"
ACCOUNT_NOT_FOUND = "Account not found"
BANK_FEED_ALREADY_MATCHED = "Bank feed transaction is already matched"
TRANSACTION_ALREADY_MATCHED = "Transaction is already matched"
