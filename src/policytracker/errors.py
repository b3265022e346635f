"""
Exception hierarchy for PolicyTracker.

Every failure the pipelines know how to handle is expressed as one of the
classes below, so batch runners can decide per class whether a failure is
local to one document (skip it and count it) or fatal to the whole run.

Failure classes:
    - TransientIOFailure: network or oracle timeouts; retried with backoff,
      then the unit of work is skipped and counted
    - MalformedOracleResponse: the model answered, but not in the agreed shape;
      the single document or candidate is rejected and processing continues
    - ExtractionFailure: malformed extraction output for a document
    - ConfigurationError: invalid settings; fatal at startup
    - StorageInconsistency: the store refers to something that is not there;
      logged and the candidate is skipped
    - StoreUnavailable: the store cannot be read at all; fatal to the run

Python Learning Notes:
    - Custom exceptions inherit from Exception (or a subclass of it)
    - A shared base class lets callers catch every project error in one clause
    - Multiple inheritance (ConfigurationError is also a ValueError) keeps
      older ``except ValueError`` call sites working
"""


class PolicyTrackerError(Exception):
    """Base class for all PolicyTracker errors."""


class TransientIOFailure(PolicyTrackerError):
    """A network or oracle call failed in a way that may succeed on retry."""


class MalformedOracleResponse(PolicyTrackerError):
    """The oracle returned invalid JSON or JSON missing required keys.

    Attributes:
        raw (str): The raw response text, truncated for logging.
    """

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw[:500]


class ExtractionFailure(MalformedOracleResponse):
    """Commitment extraction for one document could not be completed."""


class ConfigurationError(PolicyTrackerError, ValueError):
    """Settings are invalid; the run must not start."""


class StorageInconsistency(PolicyTrackerError):
    """A stored record is missing or unreadable where one was expected."""


class StoreUnavailable(PolicyTrackerError):
    """The commitment store as a whole cannot be read or written."""
