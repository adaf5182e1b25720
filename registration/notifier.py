from typing import Callable, List, Protocol, Tuple

from loguru import logger

from registration.state import FormInput

SUBMISSION_FAILED_MESSAGE = "Failed to submit the form. Please try again."


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LogNotifier:
    """Toast stand-in: routes user-facing notifications to the log."""

    def success(self, message: str) -> None:
        logger.info("Notification: {}", message)

    def error(self, message: str) -> None:
        logger.error("Notification: {}", message)


class RecordingNotifier:
    """Keeps every notification; used by the demo and by hosts that render them later."""

    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))


def render_payload(payload: FormInput, mask_secrets: bool = True) -> str:
    data = payload.model_dump()
    if mask_secrets and data.get("password"):
        data["password"] = "*" * 8
    return FormInput.model_construct(**data).model_dump_json(indent=2)


def echo_submission(notifier: Notifier, mask_secrets: bool = True) -> Callable[[FormInput], None]:
    """
    Default success side effect: no server call exists yet, so the accepted
    payload is written to the log and shown back to the user.
    """

    def _echo(payload: FormInput) -> None:
        rendered = render_payload(payload, mask_secrets=mask_secrets)
        logger.info("Registration submitted:\n{}", render_payload(payload, mask_secrets=True))
        notifier.success(rendered)

    return _echo
