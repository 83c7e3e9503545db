"""
web/forms.py -- Shape validation for the sign-in and sign-up forms.

Runs before any request leaves the web layer: an invalid form never reaches
the auth client. Messages are the exact text rendered next to each field.

Each field reports the first rule it violates. All fields are checked on
every submit, so an empty sign-up form shows the name, email and password
messages together. The password match rule runs once password itself is valid.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from core.models import EMAIL_PATTERN

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def _check_email(value: str) -> str:
    value = value.strip()
    if not _EMAIL_RE.match(value):
        raise PydanticCustomError("invalid_email", "Invalid email")
    return value


def _check_password(value: str) -> str:
    if not value:
        raise PydanticCustomError("password_required", "Password is required")
    return value


class SignInForm(BaseModel):
    model_config = ConfigDict(validate_default=True)

    email: str = ""
    password: str = ""

    email_shape = field_validator("email")(_check_email)
    password_required = field_validator("password")(_check_password)

    def credentials(self) -> dict:
        return {"email": self.email, "password": self.password}


class SignUpForm(BaseModel):
    model_config = ConfigDict(validate_default=True)

    # Field order matters: confirm_password reads the validated password.
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""

    email_shape = field_validator("email")(_check_email)
    password_required = field_validator("password")(_check_password)

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise PydanticCustomError("name_required", "Name is required")
        return value

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        _check_password(value)
        password = info.data.get("password")
        if password is not None and value != password:
            raise PydanticCustomError("password_mismatch", "Passwords do not match")
        return value

    def credentials(self) -> dict:
        """The payload sent to sign-up. The confirmation never leaves the form."""
        return {"name": self.name, "email": self.email, "password": self.password}


def field_errors(exc: ValidationError) -> dict[str, str]:
    """Map a ValidationError to {field: first message} for the templates."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "form"
        errors.setdefault(field, err["msg"])
    return errors
