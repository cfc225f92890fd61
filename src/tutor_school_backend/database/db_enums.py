'''
Enums shared by the ORM models, the API models and the scheduling core.
'''
import enum


# --- Base Enum Class ---
class ListableEnum(str, enum.Enum):
    """A custom Enum base class that can list all member values."""
    @classmethod
    def get_all_names(cls) -> list[str]:
        return [member.value for member in cls]


class UserRole(ListableEnum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class LessonStatus(ListableEnum):
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class DeliveryMode(ListableEnum):
    IN_PERSON = "IN_PERSON"
    ONLINE = "ONLINE"
    HYBRID = "HYBRID"


class RecurrenceFrequency(ListableEnum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"


class LimitPeriod(ListableEnum):
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    ENROLLMENT = "enrollment"
