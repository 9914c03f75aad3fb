# =============================================================================
# lms_core/services/grade_service.py
# GPA and course progress analytics
# =============================================================================
"""
Grade Service - derived academic metrics.

GPA: per course, graded items contribute ``score / total * weight``; the
course percentage is that sum over the graded weight, mapped onto the 4.0
scale and averaged by course credits. Ungraded items are ignored.

Course progress: the server's figure when reachable, otherwise the share of
the course's assignments that are submitted or graded.
"""

from typing import Any, List, Optional

import numpy as np
import pandas as pd

from lms_core.errors import LmsError, MalformedResponseError
from lms_core.models.entities import Grade, ResourceKind
from .base_service import BaseService, ServiceResult


# Lower bound of each band (percent) and its grade points
GPA_THRESHOLDS = np.array([60, 63, 67, 70, 73, 77, 80, 83, 87, 90, 93], dtype=float)
GPA_POINTS = np.array([0.0, 0.7, 1.0, 1.3, 1.7, 2.0, 2.3, 2.7, 3.0, 3.3, 3.7, 4.0])

COMPLETED_STATUSES = ("submitted", "graded")


def percentage_to_gpa(percentage):
    """Map percentages (scalar or array) onto the 4.0 scale."""
    points = GPA_POINTS[np.digitize(percentage, GPA_THRESHOLDS)]
    return float(points) if np.ndim(points) == 0 else points


def grades_frame(grades: List[Grade]) -> pd.DataFrame:
    """One row per grade item, with its course id and credits."""
    rows = [
        {
            "grade_id": grade.id,
            "course_id": grade.course.id if grade.course else None,
            "course_code": grade.course.code if grade.course else "",
            "credits": grade.course.credits if grade.course else 0,
            "item": item.name,
            "score": item.score,
            "total": item.total,
            "weight": item.weight,
        }
        for grade in grades
        for item in grade.assignments
    ]
    columns = ["grade_id", "course_id", "course_code", "credits", "item", "score", "total", "weight"]
    df = pd.DataFrame(rows, columns=columns)
    for col in ("score", "total", "weight", "credits"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


class GradeService(BaseService):
    """
    GPA and progress calculations over the synced data.

    Usage:
        service = GradeService(orchestrator)
        gpa = service.calculate_gpa()
        progress = service.course_progress(3).data
    """

    def __init__(self, orchestrator):
        super().__init__()
        self.orchestrator = orchestrator

    def course_summary(self, grades: Optional[List[Grade]] = None) -> pd.DataFrame:
        """
        Per-course percentage and grade points.

        Returns:
            DataFrame indexed by grade id with columns
            course_code, credits, earned, graded_weight, percentage, points
        """
        if grades is None:
            grades = self.orchestrator.read_cached(ResourceKind.GRADES)

        df = grades_frame(grades)
        graded = df[df["score"].notna() & (df["total"] > 0)].copy()
        graded["earned"] = graded["score"] / graded["total"] * graded["weight"]

        summary = graded.groupby("grade_id", sort=False).agg(
            course_code=("course_code", "first"),
            credits=("credits", "first"),
            earned=("earned", "sum"),
            graded_weight=("weight", "sum"),
        )
        summary = summary[summary["graded_weight"] > 0].copy()
        summary["percentage"] = summary["earned"] / summary["graded_weight"] * 100
        summary["points"] = percentage_to_gpa(summary["percentage"].to_numpy(dtype=float))
        return summary

    def calculate_gpa(self, grades: Optional[List[Grade]] = None) -> float:
        """Credit-weighted GPA on the 4.0 scale, rounded to two decimals."""
        summary = self.course_summary(grades)
        credits = summary["credits"].fillna(0)
        total_credits = credits.sum()
        if total_credits <= 0:
            return 0.0
        gpa = float((summary["points"] * credits).sum() / total_credits)
        self.logger.debug(f"GPA {gpa:.2f} over {len(summary)} graded course(s)")
        return round(gpa, 2)

    def course_progress(self, course_id: Any) -> ServiceResult:
        """
        Progress (0-100) for one course.

        Returns:
            ServiceResult with the progress as data and
            metadata["source"] of "remote" or "computed"
        """
        with self.log_operation(f"Progress for course {course_id}"):
            try:
                payload = self.orchestrator.connector.fetch_course_progress(course_id)
                return ServiceResult.ok(self._progress_value(payload), metadata={"source": "remote"})
            except LmsError as e:
                self.logger.warning(f"Progress for course {course_id} unavailable, computing locally: {e}")

            assignments = self.orchestrator.fetch_assignments(course_id)
            if not assignments:
                return ServiceResult.ok(0, metadata={"source": "computed"})
            done = sum(1 for a in assignments if a.status in COMPLETED_STATUSES)
            progress = int(np.round(100 * done / len(assignments)))
            return ServiceResult.ok(progress, metadata={"source": "computed"})

    @staticmethod
    def _progress_value(payload: Any) -> int:
        value = payload.get("progress") if isinstance(payload, dict) else payload
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedResponseError(
                "Progress response without a numeric progress",
                resource="progress",
                expected='{"progress": n}',
                actual=type(value).__name__,
            )
        return int(round(value))
