"""
vmdriver Exceptions
"""


class DriverError(Exception):
    """Base exception for all driver errors"""
    def __init__(self, message, code=None, details=None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ConnectionError(DriverError):
    """Session establishment errors"""
    pass


class AuthenticationError(ConnectionError):
    """Authentication failure"""
    pass


class ResolutionError(DriverError):
    """Name or path could not be mapped to an object reference"""
    pass


class NotFoundError(ResolutionError):
    """Object not found in the inventory"""
    pass


class AmbiguousPathError(ResolutionError):
    """More than one inventory object matches a name or path"""
    pass


class IntegrityError(ResolutionError):
    """Inventory parent chain is cyclic, dangling or too deep"""
    pass


class QueryError(DriverError):
    """Property retrieval errors"""
    pass


class ObjectGoneError(QueryError):
    """Referenced object no longer exists on the endpoint"""
    pass


class UnrequestedPropertyError(QueryError):
    """Property was read from a bag that did not fetch it"""
    pass


class TaskError(DriverError):
    """Remote task errors"""
    retryable = False


class TaskTimeoutError(TaskError):
    """Poll loop exceeded its maximum wait"""
    retryable = True


class CancelledError(TaskError):
    """Caller stopped waiting on a remote task"""
    pass


class CloneError(TaskError):
    """Clone task failed"""
    pass


class ClonePreconditionError(CloneError):
    """Clone request cannot succeed and was not submitted"""
    pass


class PowerError(DriverError):
    """Power transition errors"""
    retryable = False


class PowerTimeoutError(PowerError):
    """Power state did not settle in time"""
    retryable = True


class PowerRejectedError(PowerError):
    """Endpoint refused the power transition"""
    pass


class VerificationError(DriverError):
    """Provisioned machine does not match what was requested"""
    pass
