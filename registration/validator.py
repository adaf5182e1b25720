import re
from typing import Any, Callable, Dict, List, Literal, NamedTuple, Optional, Tuple, Union

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel

from registration.errors import UnknownFieldError
from registration.state import FORM_FIELDS, FormInput, RegistrationState


class FieldRule(NamedTuple):
    code: str
    check: Callable[[Any], bool]
    message: str


class Accepted(BaseModel):
    payload: FormInput

    @property
    def ok(self) -> bool:
        return True


class Rejected(BaseModel):
    errors: Dict[str, str]
    codes: Dict[str, str]

    @property
    def ok(self) -> bool:
        return False


ValidationResult = Union[Accepted, Rejected]


_PHONE_SHAPE = re.compile(
    r"\+?"
    r"(?:\d+[ .\-]?)?"  # country or trunk prefix
    r"(?:\(\d{1,5}\)[ .\-]?)?"  # at most one bracketed area code
    r"\d{2,}(?:[ .\-]\d{2,})*",
    re.ASCII,
)
_SPECIAL = re.compile(r"[\W_]", re.ASCII)


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _min_len(n: int) -> Callable[[Any], bool]:
    return lambda v: _text(v) is not None and len(v) >= n


def _max_len(n: int) -> Callable[[Any], bool]:
    return lambda v: _text(v) is not None and len(v) <= n


def _contains(pattern: "re.Pattern[str]") -> Callable[[Any], bool]:
    return lambda v: _text(v) is not None and pattern.search(v) is not None


def is_email(value: Any) -> bool:
    e = _text(value)
    if e is None or e != e.strip():
        return False
    try:
        validate_email(e, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_phone_number(value: Any) -> bool:
    p = _text(value)
    if p is None:
        return False
    p = p.strip()
    if not _PHONE_SHAPE.fullmatch(p):
        return False
    digits = sum(ch.isdigit() for ch in p)
    return 7 <= digits <= 15


FORM_RULES: Dict[str, List[FieldRule]] = {
    "full_name": [
        FieldRule("too_short", _min_len(3), "Full Name must have at least 3 character."),
        FieldRule("too_long", _max_len(100), "Full Name cannot exceed 100 characters."),
    ],
    "email": [
        FieldRule("invalid_format", is_email, "Please provide a valid email address."),
    ],
    "password": [
        FieldRule("too_short", _min_len(8), "Password must be at least 8 characters."),
        FieldRule("too_long", _max_len(40), "Password cannot exceed 40 characters."),
        FieldRule(
            "missing_uppercase",
            _contains(re.compile(r"[A-Z]")),
            "Password must contain at least one uppercase letter.",
        ),
        FieldRule(
            "missing_lowercase",
            _contains(re.compile(r"[a-z]")),
            "Password must contain at least one lowercase letter.",
        ),
        FieldRule(
            "missing_digit",
            _contains(re.compile(r"[0-9]")),
            "Password must contain at least one number.",
        ),
        FieldRule(
            "missing_special",
            _contains(_SPECIAL),
            "Password must contain at least one special character.",
        ),
    ],
    "mobile_number": [
        FieldRule("invalid_phone", is_phone_number, "Please provide a valid phone number."),
    ],
    "terms_accepted": [
        FieldRule(
            "terms_not_accepted",
            lambda v: v is True,
            "You must accept the terms and conditions.",
        ),
    ],
}


def validate_field(name: str, value: Any) -> Optional[Tuple[str, str]]:
    """Return ``(code, message)`` of the first rule ``value`` breaks, or None."""
    if name not in FORM_RULES:
        raise UnknownFieldError(name)
    for rule in FORM_RULES[name]:
        if not rule.check(value):
            return rule.code, rule.message
    return None


def validate(form: FormInput) -> ValidationResult:
    """
    Check every field of ``form`` and collect at most one message per field.

    Never raises for field contents; a broken rule only ever shows up in the
    ``Rejected`` variant.
    """
    errors: Dict[str, str] = {}
    codes: Dict[str, str] = {}

    for name in FORM_FIELDS:
        failure = validate_field(name, getattr(form, name, None))
        if failure is not None:
            codes[name], errors[name] = failure

    if errors:
        return Rejected(errors=errors, codes=codes)
    return Accepted(payload=form.snapshot())


class RegistrationValidator:
    """Graph-facing wrapper around :func:`validate`."""

    @staticmethod
    def validate_form(state: RegistrationState) -> Dict[str, Any]:
        result = validate(state)
        if isinstance(result, Rejected):
            return {
                "validation_errors": result.errors,
                "error_codes": result.codes,
                "outcome": "rejected",
            }
        return {"validation_errors": {}, "error_codes": {}, "outcome": "pending"}

    @staticmethod
    def should_submit(state: RegistrationState) -> Literal["end", "submit"]:
        return "end" if state.validation_errors else "submit"
