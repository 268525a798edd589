"""
Exceptions raised by the reschedule workflow.

Conflicts are never raised; they are returned as data and shown to the user.
"""


class SchedulingError(Exception):
    """Base exception for all scheduling errors"""
    pass


class ValidationError(SchedulingError):
    """Raised when a candidate date/time or a record cannot be resolved"""
    pass


class InvalidTransition(SchedulingError):
    """Raised when an action is not allowed in the controller's current state"""
    pass


class PersistenceError(SchedulingError):
    """Raised when the schedule update is rejected or times out"""
    pass


class NotificationError(SchedulingError):
    """Raised when the best-effort technician notification fails"""
    pass
