from pydantic import BaseModel, Field

from learnsphere.core.datetime_utils import UTCDatetime


class OptionPayload(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionPayload(BaseModel):
    text: str = Field(..., min_length=1)
    options: list[OptionPayload] = Field(..., min_length=1)


class QuizCreate(BaseModel):
    title: str | None = None
    order_index: int | None = Field(None, ge=0)


class QuizUpdate(BaseModel):
    first_attempt_points: int | None = Field(None, ge=0)
    second_attempt_points: int | None = Field(None, ge=0)
    third_attempt_points: int | None = Field(None, ge=0)
    fourth_plus_points: int | None = Field(None, ge=0)
    questions: list[QuestionPayload] | None = None

    def tiers(self) -> dict[str, int | None]:
        return {
            "first_attempt_points": self.first_attempt_points,
            "second_attempt_points": self.second_attempt_points,
            "third_attempt_points": self.third_attempt_points,
            "fourth_plus_points": self.fourth_plus_points,
        }


class OptionResponse(BaseModel):
    id: str
    text: str
    # Omitted for learners
    is_correct: bool | None = None


class QuestionResponse(BaseModel):
    id: str
    text: str
    order_index: int
    options: list[OptionResponse] = []


class QuizResponse(BaseModel):
    id: str
    lesson_id: str
    title: str
    first_attempt_points: int
    second_attempt_points: int
    third_attempt_points: int
    fourth_plus_points: int
    questions: list[QuestionResponse] = []


class QuizSummary(BaseModel):
    id: str
    lesson_id: str
    title: str
    question_count: int


class AttemptRequest(BaseModel):
    user_id: str
    # question id -> chosen option id
    answers: dict[str, str]


class AttemptResponse(BaseModel):
    id: str
    quiz_id: str
    user_id: str
    attempt_number: int
    score: int
    points_earned: int
    completed_at: UTCDatetime


class AttemptResultResponse(BaseModel):
    attempt: AttemptResponse
    score: int
    points_earned: int
    points_applied: int
    correct_count: int
    total_questions: int
    new_total_points: int
    badge_level: str
