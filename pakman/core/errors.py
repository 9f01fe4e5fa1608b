"""Error taxonomy shared by every pakman operation.

Errors are never retried internally.  Each layer adds context with
``raise ... from exc`` and the CLI reports the message and exits non-zero.
"""

from __future__ import annotations


class PakmanError(RuntimeError):
    """Base class for all expected pakman failures."""


class ValidationError(PakmanError):
    """Invalid metadata, disallowed archive member, non-executable script,
    or a malformed specifier."""


class NotFoundError(PakmanError):
    """Unknown package, version, remote, key, or archive member."""


class IntegrityError(PakmanError):
    """Checksum mismatch or signature verification failure."""


class DuplicateError(PakmanError):
    """A name or origin that may appear only once appeared twice."""


class StoreIOError(PakmanError):
    """Filesystem or network I/O failure, reported with the operation's context."""
