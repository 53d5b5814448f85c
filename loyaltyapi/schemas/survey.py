from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class QuestionType(str, Enum):
    SHORT_TEXT = "short-text"
    LONG_TEXT = "long-text"
    SINGLE_CHOICE = "single-choice"
    MULTIPLE_CHOICE = "multiple-choice"


class SurveyOption(BaseModel):
    text: str = Field(..., min_length=1)
    anti_fraud_group_id: Optional[str] = None


class SurveyQuestion(BaseModel):
    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    type: QuestionType
    is_required: bool = False
    is_anti_fraud: bool = False
    options: List[SurveyOption] = []


class SurveyCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    points_awarded: int = Field(0, ge=0)
    end_date: Optional[datetime] = None
    questions: List[SurveyQuestion] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_anti_fraud_questions(self):
        # 교차 검증 문항은 최소 2개, 모든 선택지에 그룹 ID 필요
        anti_fraud = [q for q in self.questions if q.is_anti_fraud]
        if 0 < len(anti_fraud) < 2:
            raise ValueError(
                "at least two questions must be marked anti-fraud to enable the check"
            )
        for q in anti_fraud:
            if not q.options or any(not o.anti_fraud_group_id for o in q.options):
                raise ValueError(
                    f'all options of anti-fraud question "{q.text}" need a group id'
                )
        ids = [q.id for q in self.questions]
        if len(ids) != len(set(ids)):
            raise ValueError("question ids must be unique")
        return self


class SurveyResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: str
    points_awarded: int
    end_date: Optional[datetime] = None
    questions: List[SurveyQuestion] = []

    class Config:
        from_attributes = True


class SurveyAnswer(BaseModel):
    question_id: str = Field(..., min_length=1)
    answer: List[str] = []
    other_text: Optional[str] = None


class SurveySubmitRequest(BaseModel):
    answers: List[SurveyAnswer] = Field(..., min_length=1)


class SurveySubmitResponse(BaseModel):
    submission_id: int
    is_fraudulent: bool
    fraud_reason: Optional[str] = None
    points_awarded: int
