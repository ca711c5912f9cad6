"""Exception types shared by the proptrust services."""


class ProptrustError(Exception):
    """Base class for recoverable, user-facing failures."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = ""):
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class TripValidationError(ProptrustError, ValueError):
    """A trip was submitted with a non-positive distance."""

    user_message = "End odometer must be greater than start odometer."


class NothingToImportError(ProptrustError):
    """There are no checked-out appointments for the day."""

    user_message = (
        "No verified (checked-out) appointments found for today. "
        "Tick the check-out box on your appointments in the schedule first "
        "to confirm you attended them."
    )


class NoValidRouteError(ProptrustError):
    """The route estimator returned no usable trip segments."""

    user_message = (
        "AI could not calculate a valid route. "
        "Please ensure appointments have valid addresses."
    )


class ImportInProgressError(ProptrustError):
    """A schedule import is already running against the ledger."""

    user_message = "A logbook import is already in progress."


class RouteEstimationError(ProptrustError):
    """The AI route estimation service failed."""

    user_message = "Failed to sync schedule. Please try again later."


class QuotaExceededError(RouteEstimationError):
    """The AI route estimation service rejected the call on quota or rate limits."""

    user_message = (
        "Daily AI quota reached. "
        "Please try again tomorrow or upgrade your API plan."
    )
