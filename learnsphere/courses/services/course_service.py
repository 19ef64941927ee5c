from typing import Any, cast
from uuid import UUID

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from learnsphere.auth.models.user import User
from learnsphere.core.exceptions import NotFoundError
from learnsphere.courses.models import AccessRule, Course, CourseTag, Lesson, LessonType
from learnsphere.courses.services.quiz_service import QuizService

logger = structlog.get_logger(__name__)

_COURSE_FIELDS = (
    "title",
    "description",
    "image_url",
    "website_url",
    "is_published",
    "visibility",
)

_LESSON_FIELDS = (
    "title",
    "description",
    "type",
    "video_url",
    "document_url",
    "image_url",
    "allow_download",
    "order_index",
)


def derive_access_rule(price: int | None) -> AccessRule:
    """Paid courses are PAYMENT, everything else OPEN."""
    if price is not None and price > 0:
        return AccessRule.PAYMENT
    return AccessRule.OPEN


class CourseService:
    @staticmethod
    def get_course(course_id: UUID, db: Session) -> Course:
        course = (
            db.query(Course)
            .options(selectinload(Course.tags), selectinload(Course.lessons))
            .filter(Course.id == course_id)
            .first()
        )
        if not course:
            raise NotFoundError("Course not found", resource="course")
        return cast(Course, course)

    @staticmethod
    def view_course(course: Course, db: Session) -> Course:
        course.views_count = (course.views_count or 0) + 1
        db.commit()
        db.refresh(course)
        return course

    @staticmethod
    def list_courses(
        db: Session, include_unpublished: bool = False, instructor_id: UUID | None = None
    ) -> list[Course]:
        query = db.query(Course).options(selectinload(Course.tags))
        if not include_unpublished:
            query = query.filter(Course.is_published == True)  # noqa: E712
        if instructor_id is not None:
            query = query.filter(Course.instructor_id == instructor_id)
        return cast(list[Course], query.order_by(Course.created_at.desc()).all())

    @staticmethod
    def list_tags(db: Session) -> list[str]:
        """Every distinct tag name in use, alphabetically."""
        rows = db.query(CourseTag.name).distinct().order_by(CourseTag.name).all()
        return [name for (name,) in rows]

    @staticmethod
    def create_course(data: dict[str, Any], instructor: User, db: Session) -> Course:
        price = data.get("price") or 0
        access_rule = data.get("access_rule")
        if data.get("price") is not None or access_rule is None:
            access_rule = derive_access_rule(price)

        course = Course(
            instructor_id=instructor.id,
            price=price,
            access_rule=access_rule,
            **{field: data[field] for field in _COURSE_FIELDS if data.get(field) is not None},
        )
        course.tags = [CourseTag(name=name) for name in data.get("tags") or []]
        db.add(course)
        db.commit()
        db.refresh(course)

        logger.info(
            "course_created",
            course_id=str(course.id),
            instructor_id=str(instructor.id),
            access_rule=course.access_rule.value,
        )
        return course

    @staticmethod
    def update_course(course: Course, data: dict[str, Any], db: Session) -> Course:
        """Apply a partial update.

        When ``price`` is supplied the access rule is derived from it and any
        access rule in the same request is ignored. A null price counts as
        not supplied.
        """
        for field in _COURSE_FIELDS:
            if field in data and data[field] is not None:
                setattr(course, field, data[field])

        if data.get("price") is not None:
            course.price = data["price"]
            course.access_rule = derive_access_rule(course.price)
        elif data.get("access_rule") is not None:
            course.access_rule = data["access_rule"]

        if data.get("tags") is not None:
            course.tags = [CourseTag(name=name) for name in data["tags"]]

        db.commit()
        db.refresh(course)
        return course

    @staticmethod
    def delete_course(course: Course, db: Session) -> None:
        db.delete(course)
        db.commit()
        logger.info("course_deleted", course_id=str(course.id))

    @staticmethod
    def list_lessons(course_id: UUID, db: Session) -> list[Lesson]:
        result = (
            db.query(Lesson)
            .filter(Lesson.course_id == course_id)
            .order_by(Lesson.order_index)
            .all()
        )
        return cast(list[Lesson], result)

    @staticmethod
    def get_lesson(course_id: UUID, lesson_id: UUID, db: Session) -> Lesson:
        lesson = (
            db.query(Lesson)
            .filter(Lesson.id == lesson_id, Lesson.course_id == course_id)
            .first()
        )
        if not lesson:
            raise NotFoundError("Lesson not found", resource="lesson")
        return cast(Lesson, lesson)

    @staticmethod
    def create_lesson(course: Course, data: dict[str, Any], db: Session) -> Lesson:
        last_index = (
            db.query(func.max(Lesson.order_index)).filter(Lesson.course_id == course.id).scalar()
        )
        order_index = data.get("order_index")
        if order_index is None:
            order_index = -1 if last_index is None else last_index
            order_index += 1

        lesson = Lesson(
            course_id=course.id,
            title=data["title"],
            description=data.get("description"),
            type=data.get("type") or LessonType.VIDEO,
            video_url=data.get("video_url"),
            document_url=data.get("document_url"),
            image_url=data.get("image_url"),
            duration=data.get("duration"),
            allow_download=bool(data.get("allow_download")),
            order_index=order_index,
        )
        db.add(lesson)
        db.flush()

        if lesson.type == LessonType.QUIZ:
            QuizService.ensure_quiz_for_lesson(lesson, db)

        if lesson.duration:
            course.total_duration = (course.total_duration or 0) + lesson.duration

        db.commit()
        db.refresh(lesson)
        return lesson

    @staticmethod
    def update_lesson(course: Course, lesson: Lesson, data: dict[str, Any], db: Session) -> Lesson:
        for field in _LESSON_FIELDS:
            if field in data and data[field] is not None:
                setattr(lesson, field, data[field])

        if "duration" in data:
            old = lesson.duration or 0
            lesson.duration = data["duration"]
            course.total_duration = max((course.total_duration or 0) - old, 0) + (
                lesson.duration or 0
            )

        db.flush()
        if lesson.type == LessonType.QUIZ:
            QuizService.ensure_quiz_for_lesson(lesson, db)

        db.commit()
        db.refresh(lesson)
        return lesson

    @staticmethod
    def delete_lesson(course: Course, lesson: Lesson, db: Session) -> None:
        if lesson.duration:
            course.total_duration = max((course.total_duration or 0) - lesson.duration, 0)
        db.delete(lesson)
        db.commit()
