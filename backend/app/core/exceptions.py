class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str | int):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource": resource_type, "id": resource_id},
        )

class NotAMemberError(AppError):
    """Raised when a teacher holds no membership in the organisation."""
    def __init__(self, teacher_id: int, organisation_id: str):
        super().__init__(
            f"Teacher {teacher_id} is not a member of organisation {organisation_id}",
            status_code=404,
            details={"teacher_id": teacher_id, "organisation_id": organisation_id},
        )

class PermissionDeniedError(AppError):
    """Raised when the actor lacks the permission for an organisation action."""
    def __init__(self, action: str):
        super().__init__("Insufficient permissions", status_code=403, details={"action": action})

class GridValidationError(AppError):
    """Raised when a grid address, shape or cell assignment is invalid."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class OutOfRangeError(GridValidationError):
    def __init__(self, day: int, period: int, days_count: int, period_count: int):
        field = "day" if not 0 <= day < days_count else "period"
        super().__init__(
            f"Cell ({day}, {period}) is outside the {days_count}x{period_count} timetable",
            details={
                "field": field,
                "day": day,
                "period": period,
                "days_count": days_count,
                "period_count": period_count,
            },
        )

class UnknownTeacherError(GridValidationError):
    def __init__(self, teacher_id: int, organisation_id: str, field: str = "teachers"):
        super().__init__(
            f"Teacher {teacher_id} has no active membership in organisation {organisation_id}",
            details={"field": field, "teacher_id": teacher_id, "organisation_id": organisation_id},
        )

class UnteachableSubjectError(GridValidationError):
    def __init__(self, subject: str, teacher_ids: list[int], field: str = "subjects"):
        super().__init__(
            f"Subject '{subject}' is not taught by any of the assigned teachers",
            details={"field": field, "subject": subject, "teachers": list(teacher_ids)},
        )

class TeacherNotOnRosterError(GridValidationError):
    def __init__(self, teacher_ids: list[int], classroom_id: str):
        super().__init__(
            f"Teachers {teacher_ids} are not on the roster of classroom {classroom_id}",
            details={"field": "teachers", "teachers": list(teacher_ids), "classroom_id": classroom_id},
        )

class ShapeMismatchError(AppError):
    """Raised when a grid's length does not match the shape it is addressed with."""
    def __init__(self, actual_size: int, expected_size: int):
        super().__init__(
            f"Grid holds {actual_size} cells but the timetable shape needs {expected_size}",
            status_code=409,
            details={"actual_size": actual_size, "expected_size": expected_size},
        )

class ConflictError(AppError):
    """Raised when a write collides with existing state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class ConcurrentUpdateError(ConflictError):
    """Raised when the organisation changed between read and write."""
    def __init__(self, organisation_id: str):
        super().__init__(
            f"Organisation {organisation_id} was modified concurrently; retry with a fresh read",
            details={"organisation_id": organisation_id},
        )

class DoubleBookingError(ConflictError):
    def __init__(self, teacher_id: int, classroom_id: str, index: int):
        super().__init__(
            f"Teacher {teacher_id} is already scheduled in classroom {classroom_id} at slot {index}",
            details={"teacher_id": teacher_id, "classroom_id": classroom_id, "index": index},
        )
