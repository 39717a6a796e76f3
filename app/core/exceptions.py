"""
Error kinds raised by the settlement core.

Every error is scoped to one operation and leaves persisted state untouched.
`status_code` is what the HTTP layer answers with.
"""

from typing import List, Optional


class SplitError(Exception):
    """Base class for all settlement errors."""
    status_code: int = 400


class InvalidInput(SplitError):
    """Bad title, amount, address or participant set."""
    status_code = 400


# ===== Wallet session =====

class WalletConnectionError(SplitError):
    """Connecting the wallet session failed."""
    status_code = 503


class NotInstalled(WalletConnectionError):
    status_code = 503


class AccessDenied(WalletConnectionError):
    status_code = 403


class IdentityUnavailable(WalletConnectionError):
    """The agent is locked or has not authorized this application."""
    status_code = 403


class WrongNetwork(WalletConnectionError):
    status_code = 409


class ConnectTimeout(WalletConnectionError):
    status_code = 504


class ConnectionAborted(WalletConnectionError):
    """The session was disconnected while the connect was still in flight."""
    status_code = 409


class WalletNotConnected(WalletConnectionError):
    status_code = 409


# ===== Payment =====

class IdentityMismatch(SplitError):
    """The connected wallet is not the participant that owes the share."""
    status_code = 403


class SigningRejected(SplitError):
    status_code = 409


class LedgerError(SplitError):
    """Build or submit failure reported by the ledger service."""
    status_code = 502

    def __init__(self, reason: str, result_codes: Optional[dict] = None):
        super().__init__(reason)
        self.reason = reason
        self.result_codes = result_codes or {}

    @property
    def operation_codes(self) -> List[str]:
        return list(self.result_codes.get("operations") or [])


class AccountNotFound(LedgerError):
    status_code = 404


# ===== Bills =====

class BillNotFound(SplitError):
    status_code = 404


class ParticipantNotFound(SplitError):
    status_code = 404


class AlreadyPaid(SplitError):
    status_code = 409


class PaymentInProgress(SplitError):
    status_code = 409


class StorageError(SplitError):
    """Persisted bill collection could not be read."""
    status_code = 500
