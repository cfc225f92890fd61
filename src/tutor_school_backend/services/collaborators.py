'''
Narrow interfaces to the systems around the scheduling core: billing,
notification delivery and the reminder job runner.

The default implementations only log. Real integrations subclass these and are
wired in by overriding the `get_*` dependency providers.
'''
from decimal import Decimal

from ..database import models as db_models
from ..common.logger import log


class BillingGateway:
    """Receives cancellation fee charge requests. Never processes payment here."""

    async def charge_cancellation_fee(
        self,
        lesson: db_models.Lessons,
        amount: Decimal,
        currency: str,
        reference: str
    ) -> None:
        log.info(f"Billing: charge request {reference} for student {lesson.student_id}: {amount} {currency}.")


class NotificationService:
    """Informed of substitution changes and cancellations. Delivery is someone else's job."""

    async def substitution_created(self, substitution: db_models.Substitutions) -> None:
        log.info(f"Notification: substitution {substitution.id} created for lesson {substitution.lesson_id}.")

    async def substitution_updated(self, substitution: db_models.Substitutions) -> None:
        log.info(f"Notification: substitution {substitution.id} updated for lesson {substitution.lesson_id}.")

    async def substitution_deleted(self, substitution: db_models.Substitutions) -> None:
        log.info(f"Notification: substitution {substitution.id} removed from lesson {substitution.lesson_id}.")

    async def lesson_cancelled(self, lesson: db_models.Lessons) -> None:
        log.info(f"Notification: lesson {lesson.id} ('{lesson.title}') cancelled.")


class ReminderScheduler:
    """
    Hands lessons to the external reminder job runner.
    Holds no state of its own; every call is a one-off instruction.
    """

    async def lesson_scheduled(self, lesson: db_models.Lessons) -> None:
        log.info(f"Reminders: (re)scheduling reminders for lesson {lesson.id} at {lesson.scheduled_at}.")

    async def lesson_cancelled(self, lesson: db_models.Lessons) -> None:
        log.info(f"Reminders: dropping reminders for lesson {lesson.id}.")


# --- Dependency providers ---

def get_billing_gateway() -> BillingGateway:
    return BillingGateway()

def get_notification_service() -> NotificationService:
    return NotificationService()

def get_reminder_scheduler() -> ReminderScheduler:
    return ReminderScheduler()
