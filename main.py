import asyncio

from config.logging import configure_logging
from config.settings import FormConfig
from registration.controller import SubmissionController
from registration.notifier import RecordingNotifier


async def run_session():
    patches = [
        {
            "full_name": "Jane Doe",
            "email": "not-an-email",
            "password": "Str0ng!Pass",
            "mobile_number": "+905551234567",
            "terms_accepted": True,
        },
        {"email": "jane@example.com"},
    ]

    # load config + logging
    config = FormConfig.from_env()
    configure_logging(config.log_level)

    notifier = RecordingNotifier()
    controller = SubmissionController(notifier=notifier, config=config)

    for i, patch in enumerate(patches, 1):
        for name, value in patch.items():
            controller.set_field(name, value)
        result = await controller.submit()
        hist = await controller.history()
        print(f"\nSUBMIT #{i}: status={controller.status.value} snapshots={len(hist)}")
        if result is not None and not result.ok:
            print("validation_errors:", result.errors)

    # a second click after success is ignored
    print("\nre-submit result:", await controller.submit())

    for kind, message in notifier.messages:
        print(f"\n[{kind}]\n{message}")


def main():
    asyncio.run(run_session())


if __name__ == "__main__":
    main()
