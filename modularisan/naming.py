"""Naming-convention validators and case conversions.

Pure, synchronous helpers with no I/O.  The boolean ``validate_*`` functions
answer a yes/no question; the ``*_strict`` variants raise
:class:`~modularisan.errors.ValidationError` with structured details.
"""

from __future__ import annotations

import re

from .errors import ValidationError

__all__ = [
    "SUPPORTED_FRAMEWORKS",
    "validate_name",
    "validate_module_name",
    "validate_module_name_strict",
    "validate_component_name",
    "validate_component_name_strict",
    "validate_framework",
    "validate_path",
    "validate_file_extension",
    "to_pascal_case",
    "to_camel_case",
    "to_kebab_case",
    "to_snake_case",
]

SUPPORTED_FRAMEWORKS: tuple[str, ...] = (
    "nextjs",
    "nuxtjs",
    "react",
    "vue",
    "angular",
    "svelte",
    "nestjs",
    "express",
)

_KEBAB = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
_STRICT_MODULE = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$")
_PASCAL = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_PATH = re.compile(r"^[a-zA-Z0-9/\-_.]+$")
_EXTENSION = re.compile(r"^\.[a-zA-Z0-9]+$")

_MODULE_NAME_MIN = 2
_MODULE_NAME_MAX = 50
_COMPONENT_NAME_MIN = 2


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_name(name: str) -> bool:
    """Return ``True`` if *name* is kebab-case (``user-management``)."""
    return bool(_KEBAB.match(name))


def validate_module_name(name: str) -> bool:
    """Like :func:`validate_name` but also accepts ``@scope/name``."""
    if name.startswith("@"):
        parts = name.split("/")
        if len(parts) != 2:
            return False
        scope, module = parts[0][1:], parts[1]
        return validate_name(scope) and validate_name(module)
    return validate_name(name)


def validate_module_name_strict(name: str) -> None:
    """Raise unless *name* is a 2-50 character kebab-case name starting with a letter."""
    errors: list[str] = []
    if not _STRICT_MODULE.match(name):
        errors.append("Module name must be in kebab-case (e.g., user-management)")
    if len(name) < _MODULE_NAME_MIN:
        errors.append(f"Module name must be at least {_MODULE_NAME_MIN} characters")
    if len(name) > _MODULE_NAME_MAX:
        errors.append(f"Module name must be less than {_MODULE_NAME_MAX} characters")
    if errors:
        raise ValidationError(errors[0], {"name": name, "errors": errors})


def validate_component_name(name: str, convention: str = "kebab-case") -> bool:
    """Validate a component name against ``kebab-case`` or ``PascalCase``."""
    if convention == "PascalCase":
        return bool(_PASCAL.match(name))
    return validate_name(name)


def validate_component_name_strict(name: str) -> None:
    """Raise unless *name* is PascalCase with at least two characters."""
    errors: list[str] = []
    if not _PASCAL.match(name):
        errors.append("Component name must be in PascalCase (e.g., UserCard)")
    if len(name) < _COMPONENT_NAME_MIN:
        errors.append(f"Component name must be at least {_COMPONENT_NAME_MIN} characters")
    if errors:
        raise ValidationError(errors[0], {"name": name, "errors": errors})


def validate_framework(framework: str) -> str:
    """Normalise *framework* to its lower-case supported key.

    Raises:
        ValidationError: With ``details["supported"]`` listing the valid keys.
    """
    key = framework.lower()
    if key not in SUPPORTED_FRAMEWORKS:
        raise ValidationError(
            f'Unsupported framework: "{framework}"',
            {"framework": framework, "supported": list(SUPPORTED_FRAMEWORKS)},
        )
    return key


def validate_path(path: str) -> bool:
    return bool(_PATH.match(path))


def validate_file_extension(ext: str) -> bool:
    return bool(_EXTENSION.match(ext))


# ---------------------------------------------------------------------------
# Case conversion
# ---------------------------------------------------------------------------


def to_pascal_case(value: str) -> str:
    """``user-management`` -> ``UserManagement``."""
    return "".join(word[:1].upper() + word[1:].lower() for word in value.split("-"))


def to_camel_case(value: str) -> str:
    """``user-management`` -> ``userManagement``."""
    pascal = to_pascal_case(value)
    return pascal[:1].lower() + pascal[1:]


def to_kebab_case(value: str) -> str:
    """Convert to kebab-case.

    Only lower->upper boundaries are split, so acronyms collapse:
    ``"APIClient"`` becomes ``"apiclient"``.
    """
    value = re.sub(r"([a-z])([A-Z])", r"\1-\2", value)
    value = re.sub(r"[\s_]+", "-", value)
    return value.lower()


def to_snake_case(value: str) -> str:
    """``user-management`` -> ``user_management``."""
    return value.replace("-", "_")
