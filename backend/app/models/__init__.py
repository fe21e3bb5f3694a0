from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.organisation import Organisation  # noqa: F401
from app.models.teacher import PermissionAction, Teacher, TeacherMembership  # noqa: F401
