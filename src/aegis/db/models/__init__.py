# Import every model so Base.metadata sees all tables (create_all, Alembic)
from aegis.db.base import Base
from aegis.db.models.enums import (
    ApplicationStatus,
    AttendanceStatus,
    CourseType,
    EventType,
    GrievanceCategory,
    GrievanceStatus,
    OpportunityType,
    Priority,
    ResourceType,
    TaskStatus,
    UserRole,
    UserStatus,
)
from aegis.db.models.users import Department, User
from aegis.db.models.grievances import (
    Grievance,
    GrievanceComment,
    GrievanceStatusHistory,
    GrievanceUpvote,
)
from aegis.db.models.academics import (
    AcademicEvent,
    AcademicResource,
    AttendanceLog,
    Course,
    CourseEnrollment,
)
from aegis.db.models.opportunities import Application, Opportunity, PersonalTask
from aegis.db.models.audit_logs import AuditLog

__all__ = [
    "Base",
    "User",
    "Department",
    "Grievance",
    "GrievanceComment",
    "GrievanceStatusHistory",
    "GrievanceUpvote",
    "Course",
    "CourseEnrollment",
    "AttendanceLog",
    "AcademicResource",
    "AcademicEvent",
    "Opportunity",
    "Application",
    "PersonalTask",
    "AuditLog",
    "UserRole",
    "UserStatus",
    "GrievanceCategory",
    "GrievanceStatus",
    "Priority",
    "CourseType",
    "ResourceType",
    "EventType",
    "AttendanceStatus",
    "OpportunityType",
    "ApplicationStatus",
    "TaskStatus",
]
