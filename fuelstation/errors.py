"""Error taxonomy shared by the engines and the HTTP layer."""


class FuelStationError(Exception):
    """Base class for errors raised by the outlet engines."""


class NotFound(FuelStationError):
    """A referenced outlet, tank, nozzle, staff member or shift is absent or inactive."""


class ValidationFailure(FuelStationError):
    """Caller supplied facts are malformed or miss required fields."""


class DataAccessFailure(FuelStationError):
    """The underlying store failed; the original error is chained as ``__cause__``."""
