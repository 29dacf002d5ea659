"""Exception hierarchy for dropsnag."""


class DropsnagError(Exception):
    """Base exception."""


class ConfigError(DropsnagError):
    """Invalid configuration."""


class VenueServiceError(DropsnagError):
    """Transient Resy failure: transport error, timeout or malformed payload."""


# --- Submission validation ---


class SubmissionError(DropsnagError):
    """A reservation submission was rejected. Nothing was stored."""


class RestaurantNotFoundError(SubmissionError):
    """Restaurant name did not resolve to a venue."""


class InvalidTimeFormatError(SubmissionError):
    """A time-of-day was not HH:MM."""


class InvalidDaysOffsetError(SubmissionError):
    """Negative days offset."""


class InvalidTimezoneError(SubmissionError):
    """Unknown timezone name."""


class InvalidWeekdayError(SubmissionError):
    """Unknown weekday name."""


class InvalidPartySizeError(SubmissionError):
    """Party size must be positive."""


class DuplicateRequestError(SubmissionError):
    """A request for this venue and weekday is already pending."""
