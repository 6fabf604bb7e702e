"""
Kiosk error taxonomy
"""


class KioskError(Exception):
    """Base exception for kiosk sync operations."""


class TransientRemoteError(KioskError):
    """Network or HTTP failure talking to the remote directory.

    Never retried immediately; the next scheduled tick is the retry.
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ConcurrencyRejected(KioskError):
    """A sync pass was requested while another one is in flight."""


class NotReady(KioskError):
    """No venue or remote client is configured yet."""


class PersistenceFailure(KioskError):
    """A local store write failed and was rolled back."""


class SyncCancelled(KioskError):
    """The running pass was asked to stop (application shutdown)."""
