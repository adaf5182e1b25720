"""
Submission controller: owns one live FormInput per session and drives the
Editing -> Submitting -> Submitted state machine around the submission graph.
"""
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from loguru import logger

from config.settings import FormConfig
from persistence.crypto import FieldCipher
from persistence.encrypted_memory_saver import EncryptedMemorySaver
from registration.errors import SubmissionError, UnknownFieldError
from registration.graph import SubmissionGraphFactory, SuccessHandler
from registration.notifier import LogNotifier, Notifier, echo_submission
from registration.state import (
    FORM_FIELDS,
    TEXT_FIELDS,
    FieldState,
    FormInput,
    SubmissionStatus,
)
from registration.validator import (
    Accepted,
    Rejected,
    RegistrationValidator,
    ValidationResult,
    validate,
    validate_field,
)

FieldCallback = Callable[[FieldState], None]


class SubmissionController:
    def __init__(
        self,
        on_success: Optional[SuccessHandler] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[FormConfig] = None,
    ):
        self.config = config or FormConfig()
        self.notifier = notifier or LogNotifier()
        self.on_success = on_success or echo_submission(
            self.notifier, mask_secrets=self.config.mask_secrets
        )

        self.checkpointer = EncryptedMemorySaver(
            FieldCipher(self.config.key_bytes()),
            encrypt_keys=self.config.encrypt_keys,
        )
        factory = SubmissionGraphFactory(
            RegistrationValidator(), self.on_success, on_failure=self._record_failure
        )
        self.graph = factory.compile(checkpointer=self.checkpointer)

        self._subscribers: Dict[str, List[FieldCallback]] = {name: [] for name in FORM_FIELDS}
        self._start_session()

    def _start_session(self) -> None:
        self.session_id = f"reg_{uuid4().hex}"
        self.form = FormInput()
        self.status = SubmissionStatus.EDITING
        self.submit_count = 0
        self.last_error: Optional[SubmissionError] = None
        self._errors: Dict[str, str] = {}
        self._touched: set = set()
        self._dirty: set = set()
        self._pending_failure: Optional[BaseException] = None
        logger.info("Registration session {} started", self.session_id)

    @property
    def runnable_config(self) -> Dict[str, Any]:
        return {
            "configurable": {
                "thread_id": self.session_id,
                "encrypt_keys": list(self.config.encrypt_keys),
            }
        }

    # field binding

    def _check_name(self, name: str) -> None:
        if name not in FORM_FIELDS:
            raise UnknownFieldError(name)

    def field_state(self, name: str) -> FieldState:
        self._check_name(name)
        return FieldState(
            value=getattr(self.form, name),
            error=self._errors.get(name),
            touched=name in self._touched,
            dirty=name in self._dirty,
        )

    def subscribe(self, name: str, callback: FieldCallback) -> Callable[[], None]:
        """Register ``callback`` for changes of ``name``; returns an unsubscribe function."""
        self._check_name(name)
        self._subscribers[name].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[name]:
                self._subscribers[name].remove(callback)

        return unsubscribe

    def _notify(self, name: str) -> None:
        state = self.field_state(name)
        for callback in list(self._subscribers[name]):
            callback(state)

    def _set_error(self, name: str, message: Optional[str]) -> None:
        if self._errors.get(name) == message:
            return
        if message is None:
            self._errors.pop(name, None)
        else:
            self._errors[name] = message
        self._notify(name)

    def _revalidate(self, name: str) -> None:
        failure = validate_field(name, getattr(self.form, name))
        self._set_error(name, failure[1] if failure else None)

    def set_field(self, name: str, value: Any) -> None:
        self._check_name(name)
        if self.status is SubmissionStatus.SUBMITTED:
            logger.warning("Ignoring edit of '{}': session {} already submitted", name, self.session_id)
            return

        if name in TEXT_FIELDS:
            value = "" if value is None else str(value)
        else:
            value = value is True

        setattr(self.form, name, value)
        if value != FormInput.model_fields[name].default:
            self._dirty.add(name)
        else:
            self._dirty.discard(name)
        self._notify(name)

        mode = self.config.validation_mode
        if mode == "on_change" or (mode == "on_submit" and self.submit_count > 0):
            self._revalidate(name)

    def blur(self, name: str) -> None:
        self._check_name(name)
        if name not in self._touched:
            self._touched.add(name)
            self._notify(name)
        if self.config.validation_mode == "on_blur":
            self._revalidate(name)

    # form level

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._errors)

    @property
    def form_error(self) -> Optional[str]:
        return self.last_error.message if self.last_error else None

    @property
    def can_submit(self) -> bool:
        """
        False while an attempt is in flight or after success. Outside
        "on_submit" mode the form must also be valid, so the button follows
        live revalidation.
        """
        if self.status is not SubmissionStatus.EDITING:
            return False
        return self.config.validation_mode == "on_submit" or self.is_valid

    @property
    def is_valid(self) -> bool:
        return isinstance(validate(self.form), Accepted)

    def _record_failure(self, exc: BaseException) -> None:
        self._pending_failure = exc

    async def submit(self) -> Optional[ValidationResult]:
        """
        Run one submission attempt.

        Returns None when the attempt is ignored: another one is in flight or
        the session was already submitted.
        """
        if self.status is not SubmissionStatus.EDITING:
            logger.warning(
                "Submit ignored for session {}: status is {}", self.session_id, self.status.value
            )
            return None

        self.status = SubmissionStatus.SUBMITTING
        self.submit_count += 1
        self.last_error = None
        self._pending_failure = None
        snapshot = self.form.snapshot()
        logger.info("Submitting session {} (attempt #{})", self.session_id, self.submit_count)

        patch = {**snapshot.model_dump(), "outcome": "pending", "submission_error": None}
        try:
            final = await self.graph.ainvoke(patch, self.runnable_config)
        except Exception:
            self.status = SubmissionStatus.EDITING
            raise
        if not isinstance(final, dict):
            final = final.model_dump()

        errors: Dict[str, str] = final.get("validation_errors") or {}
        for name in FORM_FIELDS:
            self._set_error(name, errors.get(name))

        outcome = final.get("outcome")
        if outcome == "rejected":
            self.status = SubmissionStatus.EDITING
            logger.info("Session {} rejected: {}", self.session_id, sorted(errors))
            return Rejected(errors=errors, codes=final.get("error_codes") or {})

        if outcome == "failed":
            self.last_error = SubmissionError(self._pending_failure or RuntimeError("unknown"))
            self.status = SubmissionStatus.EDITING
            self.notifier.error(self.last_error.message)
            return Accepted(payload=snapshot)

        self.status = SubmissionStatus.SUBMITTED
        # session over: drop the live form and every snapshot of it
        self.checkpointer.delete_thread(self.session_id)
        self.form = FormInput()
        self._dirty.clear()
        logger.info("Session {} submitted", self.session_id)
        return Accepted(payload=snapshot)

    async def history(self) -> List[Dict[str, Any]]:
        """Decrypted snapshots of this session, newest first. Empty once submitted."""
        return [snap.values async for snap in self.graph.aget_state_history(self.runnable_config)]

    def reset(self) -> None:
        """Discard the current session and start an empty one."""
        self.checkpointer.delete_thread(self.session_id)
        previous = self.session_id
        self._start_session()
        logger.info("Session {} discarded", previous)
        for name in FORM_FIELDS:
            self._notify(name)
