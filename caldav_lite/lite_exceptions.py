"""Custom exception hierarchy for caldav_lite.

Parsing is lenient: malformed content is absorbed as missing or default
fields and never raises. The exceptions below cover the few outcomes a
caller has to act on.
"""


class LiteCalDAVError(Exception):
    """Base exception for all caldav_lite errors.

    Callers that only need to know "the core refused this input" can catch
    this single type.
    """


class LiteICSStreamError(LiteCalDAVError):
    """The input stream could not be read.

    Raised when:
    - A file-like object raises OSError while being read
    - A path passed to a helper does not exist or is unreadable

    Content problems (bad lines, unknown properties) never raise this.
    """


class LiteRRuleValidationError(LiteCalDAVError):
    """A recurrence rule string was rejected before any generation.

    Raised when:
    - The rule is empty or has no FREQ
    - FREQ, INTERVAL, COUNT, UNTIL or a BY-list is malformed
    - COUNT and UNTIL are both present
    """

    def __init__(self, message: str, rule: str = ""):
        super().__init__(message)
        self.rule = rule


class LiteNotApplicableError(LiteCalDAVError):
    """A recurrence-specific operation was requested for an item it does not apply to.

    Raised when:
    - Expanding an item that has neither RRULE nor RDATE
    - Expanding a recurring item that has no DTSTART
    """


class LiteICSContentTooLargeError(LiteICSStreamError):
    """The input stream exceeded the configured size limit."""
