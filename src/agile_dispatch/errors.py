"""Error taxonomy shared by registries, binder and dispatcher.

Every error here is recoverable: a failed command leaves the document registry
untouched and the operator decides whether to retry.
"""

from __future__ import annotations


class AgileDispatchError(Exception):
    """Base class for all shell-level errors."""


class UnknownCommandError(AgileDispatchError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown command: /{name}")
        self.name = name


class DuplicateCommandError(AgileDispatchError, ValueError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Command already registered: /{name}")
        self.name = name


class RegistryFrozenError(AgileDispatchError, RuntimeError):
    """Raised when registering into a registry that is already serving."""


class MissingDefaultError(AgileDispatchError, ValueError):
    def __init__(self, command: str | None = None) -> None:
        target = f"/{command}" if command else "command"
        super().__init__(f"{target} requires an argument and declares no default")
        self.command = command


class ValidationError(AgileDispatchError, ValueError):
    """Malformed document record."""


class NotFoundError(AgileDispatchError, LookupError):
    def __init__(
        self, category: str | None = None, name: str | None = None, *, path: str | None = None
    ) -> None:
        target = f"{category}/{name}" if path is None else f"path {path}"
        super().__init__(f"Document not found: {target}")
        self.category = category
        self.name = name
        self.path = path


class InvalidSearchError(AgileDispatchError, ValueError):
    """Search term was empty."""


class DispatchFailure(AgileDispatchError, RuntimeError):
    """Wraps any failure surfaced while producing or recording an artifact."""
