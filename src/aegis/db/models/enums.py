from enum import Enum


class UserRole(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    AUTHORITY = "authority"
    ADMIN = "admin"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class GrievanceCategory(str, Enum):
    INFRASTRUCTURE = "infrastructure"
    ACADEMICS = "academics"
    HOSTEL = "hostel"
    FOOD = "food"
    OTHER = "other"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class GrievanceStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


PENDING_GRIEVANCE_STATUSES = (
    GrievanceStatus.SUBMITTED,
    GrievanceStatus.UNDER_REVIEW,
    GrievanceStatus.IN_PROGRESS,
)


class CourseType(str, Enum):
    CORE = "core"
    ELECTIVE = "elective"
    MAJOR = "major"
    MINOR = "minor"


class ResourceType(str, Enum):
    PYQ = "pyq"
    NOTES = "notes"
    LECTURE = "lecture"
    ASSIGNMENT = "assignment"


class EventType(str, Enum):
    EXAM = "exam"
    DEADLINE = "deadline"
    HOLIDAY = "holiday"
    CLASS = "class"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    CANCELLED = "cancelled"


class OpportunityType(str, Enum):
    INTERNSHIP = "internship"
    RESEARCH = "research"
    PROJECT = "project"
    TEACHING_ASSISTANT = "teaching_assistant"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    SHORTLISTED = "shortlisted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
