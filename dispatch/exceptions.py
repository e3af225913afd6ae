class EmergencyOrderError(Exception):
    """Base class for every failure the emergency-order operations report to callers."""
    pass


class ValidationError(EmergencyOrderError):
    """Raised when caller input is missing or malformed. Never retried."""
    pass


class NotFoundError(EmergencyOrderError):
    """Raised when a referenced order, user location, product or pharmacy set is absent."""
    pass


class ConflictError(EmergencyOrderError):
    """
    Raised when a state precondition failed at write time:
    a lost accept race, a duplicate response, or the wrong status for a transition.
    Retry only with fresh state.
    """
    pass


class ForbiddenError(EmergencyOrderError):
    """Raised when the caller is not allowed to act on the order."""
    pass
