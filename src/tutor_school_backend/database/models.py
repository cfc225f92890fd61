from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Date, Enum, ForeignKeyConstraint, Index, Integer, JSON, Numeric, PrimaryKeyConstraint, String, Text, Time, UniqueConstraint, Uuid, func, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import decimal
import uuid

from .db_enums import UserRole, LessonStatus, DeliveryMode, RecurrenceFrequency, LimitPeriod

class Base(DeclarativeBase):
    pass


class Organizations(Base):
    __tablename__ = 'organizations'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='organizations_pkey'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text)
    timezone: Mapped[str] = mapped_column(Text, server_default=text("'UTC'"))
    currency: Mapped[str] = mapped_column(String(3), server_default=text("'PLN'"))
    require_teacher_confirmation: Mapped[bool] = mapped_column(Boolean, server_default=text('false'), default=False)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now())


class Users(Base):
    __tablename__ = 'users'
    __table_args__ = (
        ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE', name='users_organization_id_fkey'),
        PrimaryKeyConstraint('id', name='users_pkey'),
        UniqueConstraint('email', name='users_email_key'),
        Index('idx_users_organization_id', 'organization_id')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    email: Mapped[str] = mapped_column(String(255))
    password: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(Enum(*UserRole.get_all_names(), name='user_role'))
    timezone: Mapped[str] = mapped_column(Text, server_default=text("'UTC'"), default="UTC")
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=text('true'), default=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text)
    last_name: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now())

    organization: Mapped['Organizations'] = relationship('Organizations')

    __mapper_args__ = {"polymorphic_on": "role"}

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or "Unknown"


class Teachers(Users):
    __tablename__ = 'teachers'
    __table_args__ = (
        ForeignKeyConstraint(['id'], ['users.id'], ondelete='CASCADE', name='teachers_id_fkey'),
        PrimaryKeyConstraint('id', name='teachers_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    currency: Mapped[str] = mapped_column(String(3), server_default=text("'PLN'"), default="PLN")

    # No collection of substitutions here: they are looked up by lesson_id / teacher_id.
    lessons: Mapped[list['Lessons']] = relationship(
        'Lessons',
        back_populates='teacher',
        foreign_keys='[Lessons.teacher_id]'
    )

    __mapper_args__ = {"polymorphic_identity": UserRole.TEACHER.value}


class Students(Users):
    __tablename__ = 'students'
    __table_args__ = (
        ForeignKeyConstraint(['id'], ['users.id'], ondelete='CASCADE', name='students_id_fkey'),
        PrimaryKeyConstraint('id', name='students_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    enrolled_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now())

    lessons: Mapped[list['Lessons']] = relationship(
        'Lessons',
        back_populates='student',
        foreign_keys='[Lessons.student_id]'
    )
    enrollments: Mapped[list['StudentEnrollments']] = relationship(
        'StudentEnrollments',
        back_populates='student',
        cascade='all, delete-orphan'
    )

    __mapper_args__ = {"polymorphic_identity": UserRole.STUDENT.value}


class Admins(Users):
    __tablename__ = 'admins'
    __table_args__ = (
        ForeignKeyConstraint(['id'], ['users.id'], ondelete='CASCADE', name='admins_id_fkey'),
        PrimaryKeyConstraint('id', name='admins_pkey'),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)

    __mapper_args__ = {"polymorphic_identity": UserRole.ADMIN.value}


class Courses(Base):
    __tablename__ = 'courses'
    __table_args__ = (
        CheckConstraint('default_duration_minutes > 0', name='courses_positive_duration'),
        ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE', name='courses_organization_id_fkey'),
        PrimaryKeyConstraint('id', name='courses_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(Text)
    default_duration_minutes: Mapped[int] = mapped_column(Integer, server_default=text('60'), default=60)
    price_per_lesson: Mapped[Optional[decimal.Decimal]] = mapped_column(Numeric(10, 2))
    currency: Mapped[str] = mapped_column(String(3), server_default=text("'PLN'"), default="PLN")
    delivery_mode: Mapped[str] = mapped_column(Enum(*DeliveryMode.get_all_names(), name='delivery_mode_enum'), default=DeliveryMode.IN_PERSON.value)


class StudentEnrollments(Base):
    __tablename__ = 'student_enrollments'
    __table_args__ = (
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='student_enrollments_student_id_fkey'),
        ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='CASCADE', name='student_enrollments_course_id_fkey'),
        PrimaryKeyConstraint('id', name='student_enrollments_pkey'),
        UniqueConstraint('student_id', 'course_id', name='student_enrollments_student_id_course_id_key')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    enrolled_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now())

    student: Mapped['Students'] = relationship('Students', back_populates='enrollments')
    course: Mapped['Courses'] = relationship('Courses')


class RecurringPatterns(Base):
    __tablename__ = 'recurring_patterns'
    __table_args__ = (
        CheckConstraint('"interval" >= 1', name='recurring_patterns_positive_interval'),
        CheckConstraint('end_date IS NOT NULL OR occurrences_count IS NOT NULL', name='recurring_patterns_bounded'),
        ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE', name='recurring_patterns_organization_id_fkey'),
        PrimaryKeyConstraint('id', name='recurring_patterns_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    frequency: Mapped[str] = mapped_column(Enum(*RecurrenceFrequency.get_all_names(), name='recurrence_frequency_enum'))
    interval: Mapped[int] = mapped_column(Integer, server_default=text('1'), default=1)
    days_of_week: Mapped[list] = mapped_column(JSON, default=list)
    start_date: Mapped[datetime.date] = mapped_column(Date)
    time_of_day: Mapped[datetime.time] = mapped_column(Time)
    timezone: Mapped[str] = mapped_column(Text, server_default=text("'UTC'"), default="UTC")
    end_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    occurrences_count: Mapped[Optional[int]] = mapped_column(Integer)
    created_lessons_count: Mapped[int] = mapped_column(Integer, server_default=text('0'), default=0)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now())

    lessons: Mapped[list['Lessons']] = relationship('Lessons', back_populates='recurring_pattern')


class Lessons(Base):
    __tablename__ = 'lessons'
    __table_args__ = (
        CheckConstraint('duration_minutes > 0', name='lessons_positive_duration'),
        CheckConstraint('NOT cancellation_fee_applied OR cancelled_at IS NOT NULL', name='lessons_fee_requires_cancellation'),
        ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE', name='lessons_organization_id_fkey'),
        ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='RESTRICT', name='lessons_teacher_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='RESTRICT', name='lessons_student_id_fkey'),
        ForeignKeyConstraint(['course_id'], ['courses.id'], ondelete='SET NULL', name='lessons_course_id_fkey'),
        ForeignKeyConstraint(['enrollment_id'], ['student_enrollments.id'], ondelete='SET NULL', name='lessons_enrollment_id_fkey'),
        ForeignKeyConstraint(['recurring_pattern_id'], ['recurring_patterns.id'], ondelete='SET NULL', name='lessons_recurring_pattern_id_fkey'),
        PrimaryKeyConstraint('id', name='lessons_pkey'),
        Index('idx_lessons_teacher_scheduled', 'teacher_id', 'scheduled_at'),
        Index('idx_lessons_student_scheduled', 'student_id', 'scheduled_at'),
        Index('idx_lessons_status', 'status')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    teacher_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    title: Mapped[str] = mapped_column(Text)
    scheduled_at: Mapped[datetime.datetime] = mapped_column(DateTime(True))
    duration_minutes: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(Enum(*LessonStatus.get_all_names(), name='lesson_status_enum'), server_default=text("'SCHEDULED'"), default=LessonStatus.SCHEDULED.value)
    delivery_mode: Mapped[str] = mapped_column(Enum(*DeliveryMode.get_all_names(), name='delivery_mode_enum'), default=DeliveryMode.IN_PERSON.value)
    currency: Mapped[str] = mapped_column(String(3), server_default=text("'PLN'"), default="PLN")
    cancellation_fee_applied: Mapped[bool] = mapped_column(Boolean, server_default=text('false'), default=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, server_default=text('false'), default=False)
    course_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    enrollment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    description: Mapped[Optional[str]] = mapped_column(Text)
    meeting_url: Mapped[Optional[str]] = mapped_column(Text)
    price: Mapped[Optional[decimal.Decimal]] = mapped_column(Numeric(10, 2))
    cancelled_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text)
    cancellation_fee_amount: Mapped[Optional[decimal.Decimal]] = mapped_column(Numeric(10, 2))
    confirmed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))
    completed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True))
    recurring_pattern_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now())
    updated_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now(), onupdate=func.now())

    teacher: Mapped['Teachers'] = relationship('Teachers', back_populates='lessons', foreign_keys=[teacher_id])
    student: Mapped['Students'] = relationship('Students', back_populates='lessons', foreign_keys=[student_id])
    course: Mapped[Optional['Courses']] = relationship('Courses')
    recurring_pattern: Mapped[Optional['RecurringPatterns']] = relationship('RecurringPatterns', back_populates='lessons')

    substitution: Mapped[Optional['Substitutions']] = relationship(
        'Substitutions',
        back_populates='lesson',
        uselist=False,
        cascade='all, delete-orphan' # Deleting a lesson deletes its substitution
    )

    @property
    def effective_teacher_id(self) -> uuid.UUID:
        """The teacher actually running this lesson. Derived on read, never stored."""
        if self.substitution is not None:
            return self.substitution.substitute_teacher_id
        return self.teacher_id

    @property
    def has_substitution(self) -> bool:
        return self.substitution is not None


class Substitutions(Base):
    __tablename__ = 'substitutions'
    __table_args__ = (
        CheckConstraint('original_teacher_id <> substitute_teacher_id', name='substitutions_distinct_teachers'),
        ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE', name='substitutions_organization_id_fkey'),
        ForeignKeyConstraint(['lesson_id'], ['lessons.id'], ondelete='CASCADE', name='substitutions_lesson_id_fkey'),
        ForeignKeyConstraint(['original_teacher_id'], ['teachers.id'], ondelete='CASCADE', name='substitutions_original_teacher_id_fkey'),
        ForeignKeyConstraint(['substitute_teacher_id'], ['teachers.id'], ondelete='CASCADE', name='substitutions_substitute_teacher_id_fkey'),
        PrimaryKeyConstraint('id', name='substitutions_pkey'),
        UniqueConstraint('lesson_id', name='substitutions_lesson_id_key'),
        Index('idx_substitutions_substitute_teacher_id', 'substitute_teacher_id')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    lesson_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    original_teacher_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    substitute_teacher_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now())
    updated_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(True), server_default=func.now(), onupdate=func.now())

    lesson: Mapped['Lessons'] = relationship('Lessons', back_populates='substitution')
    original_teacher: Mapped['Teachers'] = relationship('Teachers', foreign_keys=[original_teacher_id])
    substitute_teacher: Mapped['Teachers'] = relationship('Teachers', foreign_keys=[substitute_teacher_id])


class CancellationPolicies(Base):
    __tablename__ = 'cancellation_policies'
    __table_args__ = (
        CheckConstraint('fee_percent IS NULL OR (fee_percent >= 0 AND fee_percent <= 100)', name='cancellation_policies_fee_percent_range'),
        CheckConstraint('hours_threshold IS NULL OR hours_threshold >= 0', name='cancellation_policies_hours_threshold_positive'),
        ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE', name='cancellation_policies_organization_id_fkey'),
        ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE', name='cancellation_policies_student_id_fkey'),
        PrimaryKeyConstraint('id', name='cancellation_policies_pkey'),
        UniqueConstraint('organization_id', 'student_id', name='cancellation_policies_organization_id_student_id_key'),
        # NULLs are distinct in the constraint above, so one organization-wide row is enforced separately.
        Index('cancellation_policies_organization_default_key', 'organization_id', unique=True,
              postgresql_where=text('student_id IS NULL'), sqlite_where=text('student_id IS NULL'))
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    # NULL student_id is the organization-wide policy; a student row overrides it.
    student_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    fee_enabled: Mapped[bool] = mapped_column(Boolean, server_default=text('false'), default=False)
    fee_percent: Mapped[Optional[decimal.Decimal]] = mapped_column(Numeric(5, 2))
    hours_threshold: Mapped[Optional[int]] = mapped_column(Integer)
    limit_enabled: Mapped[bool] = mapped_column(Boolean, server_default=text('false'), default=False)
    limit_count: Mapped[Optional[int]] = mapped_column(Integer)
    limit_period: Mapped[str] = mapped_column(Enum(*LimitPeriod.get_all_names(), name='limit_period_enum'), server_default=text("'month'"), default=LimitPeriod.MONTH.value)
