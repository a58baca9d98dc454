"""Typed errors raised by the Modularisan core.

The core never prints or exits on failure.  It raises one of the classes
below and leaves presentation to the CLI shell, which uses
:func:`format_error` to turn any of them into a single human-readable line.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


class ModularisanError(Exception):
    """Base class for every error the core raises on purpose."""

    def __init__(
        self,
        message: str,
        code: str = "MODULARISAN_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(ModularisanError):
    """A name or option failed a naming/shape contract.

    Always raised before any filesystem mutation for the step, so the
    command can be retried with corrected input.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", details)


class ConfigurationError(ModularisanError):
    """Persisted configuration (or the project manifest) is missing or unusable."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", details)


class FileSystemError(ModularisanError):
    """A directory/file operation failed.  ``path`` is the attempted path."""

    def __init__(
        self,
        message: str,
        path: str | Path | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(details or {})
        if path is not None:
            merged.setdefault("path", str(path))
        super().__init__(message, "FILESYSTEM_ERROR", merged)
        self.path = Path(path) if path is not None else None


class TemplateRenderingError(ModularisanError):
    """A template could not be located or rendered."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "TEMPLATE_ERROR", details)


class AlreadyExistsError(ModularisanError):
    """Target module or entity is already on disk."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "ALREADY_EXISTS", details)


class NotFoundError(ModularisanError):
    """Module or entity lookup found nothing."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "NOT_FOUND", details)


class AIProviderError(ModularisanError):
    """An AI provider could not be configured or its request failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "AI_PROVIDER_ERROR", details)


def format_error(error: BaseException, debug: bool = False) -> str:
    """Return the one-line message the CLI prints for *error*.

    Args:
        error: Any exception that reached the top level.
        debug: When ``True`` the structured ``details`` of a
            :class:`ModularisanError` are appended as compact JSON.

    Returns:
        A single line without a trailing newline.
    """
    if isinstance(error, ModularisanError):
        line = f"{error.message}"
        if debug and error.details:
            line += f" {json.dumps(error.details, default=str, sort_keys=True)}"
        return line
    return f"Unexpected error: {error}"
