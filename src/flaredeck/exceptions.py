"""Error taxonomy shared by the deploy pipeline, the registry and the CLI."""

__all__ = [
    "ApiError",
    "FlaredeckError",
    "InvalidWorkerNameError",
    "RegistryParseError",
    "UserError",
    "WorkerNotRegisteredError",
]


class FlaredeckError(Exception):
    """Base class for errors that are reported to the user without a traceback."""


class UserError(FlaredeckError):
    """
    A problem the user can fix: missing configuration, unknown queue, bad flags.

    The message carries the remediation and is printed verbatim.
    """


class ApiError(FlaredeckError):
    """Raised when the Cloudflare API answers with an error envelope or status."""

    def __init__(self, message: str, code: int = 0, status_code: int = 0) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} [code: {self.code}]"
        return self.message


class WorkerNotRegisteredError(FlaredeckError, LookupError):
    """Raised by a strict unregister when no registry entry exists for the name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Worker "{name}" is not registered')


class InvalidWorkerNameError(UserError, ValueError):
    """A worker name that cannot be used as a registry file name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f'Invalid worker name "{name}": names must not be empty, start with a dot '
            "or contain a path separator"
        )


class RegistryParseError(FlaredeckError, ValueError):
    """A registry file could not be parsed. Scans skip the file instead of failing."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f'Could not parse registry entry "{name}": {reason}')
