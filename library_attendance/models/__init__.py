# Library Attendance — Database Models
# Import all models here for SQLAlchemy discovery

from library_attendance.models.patron import Patron              # noqa
from library_attendance.models.session import PatronSession      # noqa
from library_attendance.models.app_settings import SettingsRow   # noqa
