"""Exceptions raised inside a user's sync run.

Rate limiting is not an exception: it is reported as
``VendorStatus.RATE_LIMITED`` and answered with cached rows.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for sync pipeline failures."""


class AuthExpiredError(SyncError):
    """The vendor rejected the session token (failCode 305 / USER_MUST_RELOGIN)."""


class FetchFailedError(SyncError):
    """A vendor call failed for a reason other than auth or rate limiting."""


class LoginFailedError(SyncError):
    """No session token could be obtained for the user."""


class NoPlantsError(SyncError):
    """The user has no plants, fresh or cached."""
