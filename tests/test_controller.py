import asyncio

import pytest

from config.settings import FormConfig
from registration.controller import SubmissionController
from registration.errors import UnknownFieldError
from registration.notifier import RecordingNotifier
from registration.state import FormInput, SubmissionStatus
from registration.validator import Accepted, Rejected


VALID = {
    "full_name": "Jane Doe",
    "email": "jane@example.com",
    "password": "Str0ng!Pass",
    "mobile_number": "+905551234567",
    "terms_accepted": True,
}


def make_controller(on_success=None, **config):
    notifier = RecordingNotifier()
    controller = SubmissionController(
        on_success=on_success, notifier=notifier, config=FormConfig(**config)
    )
    return controller, notifier


def fill(controller, **overrides):
    for name, value in {**VALID, **overrides}.items():
        controller.set_field(name, value)


def test_valid_submission_reaches_submitted():
    calls = []
    controller, notifier = make_controller(on_success=calls.append)
    fill(controller)

    assert controller.status is SubmissionStatus.EDITING
    result = asyncio.run(controller.submit())

    assert isinstance(result, Accepted)
    assert controller.status is SubmissionStatus.SUBMITTED
    assert len(calls) == 1
    assert calls[0].model_dump() == VALID
    assert notifier.messages == []
    assert not controller.can_submit


def test_rejected_email_stays_editing():
    calls = []
    controller, notifier = make_controller(on_success=calls.append)
    fill(controller, email="not-an-email")

    result = asyncio.run(controller.submit())

    assert isinstance(result, Rejected)
    assert result.errors == {"email": "Please provide a valid email address."}
    assert controller.status is SubmissionStatus.EDITING
    assert controller.errors == {"email": "Please provide a valid email address."}
    assert controller.field_state("email").error == "Please provide a valid email address."
    assert calls == []
    assert notifier.messages == []


def test_double_submit_invokes_side_effect_once():
    calls = []

    async def slow_success(payload):
        await asyncio.sleep(0.01)
        calls.append(payload)

    controller, _ = make_controller(on_success=slow_success)
    fill(controller)

    async def go():
        return await asyncio.gather(controller.submit(), controller.submit())

    first, second = asyncio.run(go())

    assert isinstance(first, Accepted)
    assert second is None
    assert len(calls) == 1
    assert controller.status is SubmissionStatus.SUBMITTED


def test_submit_after_success_is_ignored():
    calls = []
    controller, _ = make_controller(on_success=calls.append)
    fill(controller)

    asyncio.run(controller.submit())
    assert asyncio.run(controller.submit()) is None
    assert len(calls) == 1


def test_failing_side_effect_is_guarded():
    attempts = []

    def explode(payload):
        attempts.append(payload)
        raise RuntimeError("backend down")

    controller, notifier = make_controller(on_success=explode)
    fill(controller)

    result = asyncio.run(controller.submit())

    assert isinstance(result, Accepted)
    assert controller.status is SubmissionStatus.EDITING
    assert notifier.messages == [("error", "Failed to submit the form. Please try again.")]
    assert controller.form_error == "Failed to submit the form. Please try again."
    assert controller.last_error.code == "SUBMISSION_FAILED"
    assert isinstance(controller.last_error.__cause__, RuntimeError)
    assert controller.form.model_dump() == VALID
    assert controller.errors == {}

    # retry without re-entering data
    asyncio.run(controller.submit())
    assert len(attempts) == 2


def test_retry_after_failure_can_succeed():
    outcomes = iter([RuntimeError("flaky"), None])
    calls = []

    def flaky(payload):
        exc = next(outcomes)
        if exc is not None:
            raise exc
        calls.append(payload)

    controller, _ = make_controller(on_success=flaky)
    fill(controller)

    asyncio.run(controller.submit())
    asyncio.run(controller.submit())

    assert controller.status is SubmissionStatus.SUBMITTED
    assert controller.last_error is None
    assert len(calls) == 1


def test_default_handler_echoes_payload_with_masked_password():
    controller, notifier = make_controller()
    fill(controller)

    asyncio.run(controller.submit())

    [(kind, message)] = notifier.messages
    assert kind == "success"
    assert '"email": "jane@example.com"' in message
    assert "Str0ng!Pass" not in message


def test_default_handler_can_show_password():
    controller, notifier = make_controller(mask_secrets=False)
    fill(controller)

    asyncio.run(controller.submit())

    assert "Str0ng!Pass" in notifier.messages[0][1]


def test_revalidates_on_change_after_first_submit():
    controller, _ = make_controller(on_success=lambda p: None)
    fill(controller, email="bad")

    controller.set_field("password", "weak")
    assert controller.errors == {}

    asyncio.run(controller.submit())
    assert set(controller.errors) == {"email", "password"}

    controller.set_field("email", "jane@example.com")
    assert set(controller.errors) == {"password"}


def test_on_change_mode_validates_every_edit():
    controller, _ = make_controller(validation_mode="on_change")

    controller.set_field("full_name", "Jo")
    assert controller.errors == {"full_name": "Full Name must have at least 3 character."}

    controller.set_field("full_name", "Joe")
    assert controller.errors == {}


def test_on_blur_mode_validates_when_field_loses_focus():
    controller, _ = make_controller(validation_mode="on_blur")

    controller.set_field("mobile_number", "123")
    assert controller.errors == {}

    controller.blur("mobile_number")
    assert controller.errors == {"mobile_number": "Please provide a valid phone number."}
    assert controller.field_state("mobile_number").touched


def test_subscribers_receive_field_state():
    controller, _ = make_controller(validation_mode="on_change")
    seen = []
    unsubscribe = controller.subscribe("password", seen.append)

    controller.set_field("password", "short1!")
    unsubscribe()
    controller.set_field("password", "Valid1Pass!")

    assert seen[0].value == "short1!"
    assert seen[0].dirty
    assert seen[-1].error == "Password must be at least 8 characters."


def test_dirty_tracks_difference_from_default():
    controller, _ = make_controller()

    controller.set_field("full_name", "Jane")
    assert controller.field_state("full_name").dirty

    controller.set_field("full_name", "")
    assert not controller.field_state("full_name").dirty


def test_terms_only_true_counts_as_accepted():
    controller, _ = make_controller()

    controller.set_field("terms_accepted", "yes")
    assert controller.form.terms_accepted is False

    controller.set_field("terms_accepted", True)
    assert controller.form.terms_accepted is True


def test_unknown_field_raises():
    controller, _ = make_controller()

    with pytest.raises(UnknownFieldError):
        controller.set_field("nickname", "x")


def test_is_valid_reflects_current_values():
    controller, _ = make_controller()
    assert not controller.is_valid

    fill(controller)
    assert controller.is_valid


def test_edits_after_submission_are_ignored():
    controller, _ = make_controller(on_success=lambda p: None)
    fill(controller)
    asyncio.run(controller.submit())

    controller.set_field("full_name", "Someone Else")

    assert controller.form == FormInput()


def test_reset_starts_a_fresh_session():
    controller, _ = make_controller(on_success=lambda p: None)
    fill(controller)
    asyncio.run(controller.submit())
    old_session = controller.session_id

    controller.reset()

    assert controller.session_id != old_session
    assert controller.status is SubmissionStatus.EDITING
    assert controller.form == FormInput()
    assert controller.submit_count == 0
    assert asyncio.run(controller.history()) == []


def test_history_is_decrypted_while_editing():
    controller, _ = make_controller(on_success=lambda p: None)
    fill(controller, email="not-an-email")
    asyncio.run(controller.submit())

    hist = asyncio.run(controller.history())

    assert hist[0]["email"] == "not-an-email"
    assert hist[0]["password"] == "Str0ng!Pass"
    assert hist[0]["outcome"] == "rejected"


def test_successful_submission_discards_form_and_snapshots():
    calls = []
    controller, _ = make_controller(on_success=calls.append)
    fill(controller, email="not-an-email")
    asyncio.run(controller.submit())
    assert asyncio.run(controller.history()) != []

    controller.set_field("email", "jane@example.com")
    asyncio.run(controller.submit())

    assert controller.status is SubmissionStatus.SUBMITTED
    assert calls[0].password == "Str0ng!Pass"
    assert asyncio.run(controller.history()) == []
    assert controller.form == FormInput()
    assert controller.checkpointer.get_tuple(controller.runnable_config) is None


def test_rejected_attempt_clears_previous_failure():
    outcomes = iter([RuntimeError("backend down")])

    def fail_once(payload):
        exc = next(outcomes, None)
        if exc is not None:
            raise exc

    controller, _ = make_controller(on_success=fail_once)
    fill(controller)
    asyncio.run(controller.submit())
    assert controller.form_error is not None

    controller.set_field("email", "not-an-email")
    result = asyncio.run(controller.submit())

    assert isinstance(result, Rejected)
    assert controller.form_error is None
    assert controller.last_error is None
    assert controller.errors == {"email": "Please provide a valid email address."}


def test_can_submit_follows_validity_outside_on_submit_mode():
    controller, _ = make_controller(validation_mode="on_change")
    assert not controller.can_submit

    fill(controller)
    assert controller.can_submit

    controller.set_field("password", "weak")
    assert not controller.can_submit


def test_can_submit_in_on_submit_mode_only_tracks_status():
    controller, _ = make_controller(on_success=lambda p: None)
    assert controller.can_submit

    fill(controller)
    asyncio.run(controller.submit())
    assert not controller.can_submit
