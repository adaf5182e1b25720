from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, StrictBool


FORM_FIELDS: Tuple[str, ...] = (
    "full_name",
    "email",
    "password",
    "mobile_number",
    "terms_accepted",
)
TEXT_FIELDS = frozenset(FORM_FIELDS) - {"terms_accepted"}


class FormInput(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    full_name: str = Field(default="", description="User's full name")
    email: str = Field(default="", description="User email")
    password: str = Field(default="", description="Account password")
    mobile_number: str = Field(
        default="", description="Phone number including country calling code"
    )
    terms_accepted: StrictBool = Field(default=False, description="Terms & Conditions consent")

    def snapshot(self) -> "FormInput":
        """Detached copy carrying only the form fields."""
        return FormInput.model_construct(**{name: getattr(self, name) for name in FORM_FIELDS})


class FieldState(BaseModel):
    value: Any = None
    error: Optional[str] = None
    touched: bool = False
    dirty: bool = False


class SubmissionStatus(str, Enum):
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class RegistrationState(FormInput):
    """Graph state: the submitted form plus the outcome of one attempt."""

    validation_errors: Dict[str, str] = Field(default_factory=dict)
    error_codes: Dict[str, str] = Field(default_factory=dict)
    outcome: Literal["pending", "rejected", "submitted", "failed"] = "pending"
    submission_error: Optional[str] = None
