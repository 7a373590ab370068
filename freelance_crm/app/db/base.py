# Import all models so Base.metadata sees every table
from freelance_crm.app.db.base_class import Base  # noqa: F401
from freelance_crm.app.models.client import Client  # noqa: F401
from freelance_crm.app.models.invoice import Invoice  # noqa: F401
from freelance_crm.app.models.invoice_item import InvoiceItem  # noqa: F401
from freelance_crm.app.models.invoice_sequence import InvoiceSequence  # noqa: F401
from freelance_crm.app.models.project import Project, ProjectItem  # noqa: F401
from freelance_crm.app.models.recurring_task import RecurringTask, RecurringTaskLog  # noqa: F401
from freelance_crm.app.models.reminder import Reminder  # noqa: F401
from freelance_crm.app.models.time_entry import TimeEntry  # noqa: F401
from freelance_crm.app.models.user import User  # noqa: F401
from freelance_crm.app.models.user_setting import UserSetting  # noqa: F401
