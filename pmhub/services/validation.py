"""Field rules shared by the PM template and schedule services."""
from typing import Optional

from .errors import InvalidNameError

NAME_MAX_LENGTH = 200


def clean_text(value: Optional[str]) -> Optional[str]:
    """Trim free text; blank strings become None."""
    if value is None:
        return None
    return value.strip() or None


def validate_name(name: Optional[str], label: str) -> str:
    if not name or not name.strip():
        raise InvalidNameError(f"{label} name is required", field="name")
    if len(name.strip()) > NAME_MAX_LENGTH:
        raise InvalidNameError(f"{label} name must be {NAME_MAX_LENGTH} characters or less", field="name")
    return name.strip()
