"""Enumerations shared by models, schemas and services.

Behaviour attached to the enums (allowed transitions, scheduling steps) is kept
in the static tables below so each rule lives in one place.
"""

import enum
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta
from sqlalchemy import Enum as SAEnum


class ClientType(str, enum.Enum):
    COMPANY = "company"
    INDIVIDUAL = "individual"


class ProjectType(str, enum.Enum):
    FIXED = "fixed"
    HOURLY = "hourly"

    @property
    def label(self) -> str:
        return {ProjectType.FIXED: "Festpreis", ProjectType.HOURLY: "Nach Aufwand"}[self]


class ProjectStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return PROJECT_STATUS_LABELS[self]

    def allowed_transitions(self) -> tuple["ProjectStatus", ...]:
        return PROJECT_TRANSITIONS[self]

    def can_transition_to(self, target: "ProjectStatus") -> bool:
        return target in PROJECT_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not PROJECT_TRANSITIONS[self]


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return INVOICE_STATUS_LABELS[self]

    def allowed_transitions(self) -> tuple["InvoiceStatus", ...]:
        return INVOICE_TRANSITIONS[self]

    def can_transition_to(self, target: "InvoiceStatus") -> bool:
        return target in INVOICE_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not INVOICE_TRANSITIONS[self]

    @property
    def is_unpaid(self) -> bool:
        return self in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


class TaskFrequency(str, enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def label(self) -> str:
        return TASK_FREQUENCY_LABELS[self]

    def next_due_date(self, from_date: date) -> date:
        return from_date + FREQUENCY_STEPS[self]

    def days_before(self) -> int:
        return UPCOMING_DAYS_BEFORE[self]


class ReminderPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ReminderRecurrence(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    def next_due_date(self, from_dt: datetime) -> datetime:
        return from_dt + RECURRENCE_STEPS[self]


class RemindableType(str, enum.Enum):
    CLIENT = "client"
    PROJECT = "project"
    INVOICE = "invoice"
    RECURRING_TASK = "recurring_task"


PROJECT_TRANSITIONS = {
    ProjectStatus.DRAFT: (ProjectStatus.SENT, ProjectStatus.CANCELLED),
    ProjectStatus.SENT: (ProjectStatus.ACCEPTED, ProjectStatus.DECLINED, ProjectStatus.CANCELLED),
    ProjectStatus.ACCEPTED: (ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELLED),
    ProjectStatus.DECLINED: (),
    ProjectStatus.IN_PROGRESS: (ProjectStatus.COMPLETED, ProjectStatus.CANCELLED),
    # Only reachable through reopen_project
    ProjectStatus.COMPLETED: (ProjectStatus.IN_PROGRESS,),
    ProjectStatus.CANCELLED: (),
}

INVOICEABLE_PROJECT_STATUSES = frozenset(
    {ProjectStatus.ACCEPTED, ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED}
)

INVOICE_TRANSITIONS = {
    InvoiceStatus.DRAFT: (InvoiceStatus.SENT, InvoiceStatus.CANCELLED),
    InvoiceStatus.SENT: (InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED),
    InvoiceStatus.OVERDUE: (InvoiceStatus.PAID, InvoiceStatus.CANCELLED),
    InvoiceStatus.PAID: (),
    InvoiceStatus.CANCELLED: (),
}

FREQUENCY_STEPS = {
    TaskFrequency.WEEKLY: timedelta(days=7),
    TaskFrequency.MONTHLY: relativedelta(months=1),
    TaskFrequency.QUARTERLY: relativedelta(months=3),
    TaskFrequency.YEARLY: relativedelta(years=1),
}

UPCOMING_DAYS_BEFORE = {
    TaskFrequency.WEEKLY: 2,
    TaskFrequency.MONTHLY: 7,
    TaskFrequency.QUARTERLY: 14,
    TaskFrequency.YEARLY: 30,
}

RECURRENCE_STEPS = {
    ReminderRecurrence.DAILY: timedelta(days=1),
    ReminderRecurrence.WEEKLY: timedelta(days=7),
    ReminderRecurrence.MONTHLY: relativedelta(months=1),
    ReminderRecurrence.QUARTERLY: relativedelta(months=3),
    ReminderRecurrence.YEARLY: relativedelta(years=1),
}

PROJECT_STATUS_LABELS = {
    ProjectStatus.DRAFT: "Entwurf",
    ProjectStatus.SENT: "Gesendet",
    ProjectStatus.ACCEPTED: "Angenommen",
    ProjectStatus.DECLINED: "Abgelehnt",
    ProjectStatus.IN_PROGRESS: "In Bearbeitung",
    ProjectStatus.COMPLETED: "Abgeschlossen",
    ProjectStatus.CANCELLED: "Storniert",
}

INVOICE_STATUS_LABELS = {
    InvoiceStatus.DRAFT: "Entwurf",
    InvoiceStatus.SENT: "Gesendet",
    InvoiceStatus.PAID: "Bezahlt",
    InvoiceStatus.OVERDUE: "Überfällig",
    InvoiceStatus.CANCELLED: "Storniert",
}

TASK_FREQUENCY_LABELS = {
    TaskFrequency.WEEKLY: "Wöchentlich",
    TaskFrequency.MONTHLY: "Monatlich",
    TaskFrequency.QUARTERLY: "Vierteljährlich",
    TaskFrequency.YEARLY: "Jährlich",
}


def enum_type(enum_cls, length: int = 20) -> SAEnum:
    """Store enum values (not names) in a plain string column."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )
