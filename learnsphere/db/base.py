"""
Database base module - imports every model so ``Base.metadata`` is complete.

``init_db`` and the test fixtures call ``Base.metadata.create_all`` and rely
on these imports having registered all tables.
"""

from sqlalchemy.engine import Engine

from learnsphere.auth.models.user import User
from learnsphere.courses.models.course import Course, CourseTag, Lesson
from learnsphere.courses.models.enrollment import Enrollment
from learnsphere.courses.models.gamification import PointsLedger
from learnsphere.courses.models.progress import LessonProgress
from learnsphere.courses.models.quiz import Question, QuestionOption, Quiz, QuizAttempt
from learnsphere.courses.models.review import Review
from learnsphere.db.session import Base
from learnsphere.payments.models.payment import Payment

__all__ = [
    "Base",
    "User",
    "Course",
    "CourseTag",
    "Lesson",
    "Enrollment",
    "LessonProgress",
    "Quiz",
    "Question",
    "QuestionOption",
    "QuizAttempt",
    "Review",
    "PointsLedger",
    "Payment",
    "init_db",
]


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
