"""Course models."""

from learnsphere.courses.models.course import (
    AccessRule,
    Course,
    CourseTag,
    Lesson,
    LessonType,
    Visibility,
)
from learnsphere.courses.models.enrollment import Enrollment, EnrollmentStatus
from learnsphere.courses.models.gamification import PointsLedger
from learnsphere.courses.models.progress import LessonProgress
from learnsphere.courses.models.quiz import Question, QuestionOption, Quiz, QuizAttempt
from learnsphere.courses.models.review import Review

__all__ = [
    "AccessRule",
    "Course",
    "CourseTag",
    "Lesson",
    "LessonType",
    "Visibility",
    "Enrollment",
    "EnrollmentStatus",
    "LessonProgress",
    "PointsLedger",
    "Quiz",
    "Question",
    "QuestionOption",
    "QuizAttempt",
    "Review",
]
