# =============================================================================
# lms_core/services/__init__.py
# Service Layer for the LMS client
# =============================================================================
"""
Service Layer

Shared result container and base class for the operations exposed to the UI,
plus derived academic metrics.

Usage Example:
-------------
    from lms_core.services import GradeService

    grades = GradeService(orchestrator)
    print(f"GPA: {grades.calculate_gpa():.2f}")

    result = grades.course_progress(3)
    if result.success:
        print(f"{result.data}% ({result.metadata['source']})")
"""

from .base_service import BaseService, ServiceResult
from .grade_service import GradeService, percentage_to_gpa

__all__ = [
    "BaseService",
    "ServiceResult",
    "GradeService",
    "percentage_to_gpa",
]
