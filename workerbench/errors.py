class WorkerBenchError(Exception):
    """Base class for all workerbench errors."""


class ConfigError(WorkerBenchError):
    """Exception raised when an environment variable or flag can't be parsed."""


class BindError(WorkerBenchError):
    """Exception raised when the listening socket can't be bound."""


class InvalidRoleError(WorkerBenchError):
    """Exception raised when a component is constructed in the wrong process role."""


class NotStartedError(WorkerBenchError):
    """Exception raised when the supervisor is queried before it has started."""
