from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class ContestCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    points_per_answer: int = Field(0, ge=0, description="참여 비용")
    reward_points: int = Field(0, ge=0, description="정답 보상")

    @model_validator(mode="after")
    def check_window(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ContestResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    points_per_answer: int
    reward_points: int
    is_answer_published: bool
    answer: Optional[str] = None
    status: str

    class Config:
        from_attributes = True


class ContestSubmitRequest(BaseModel):
    answer: str = Field(..., max_length=2000, description="제출 답안")


class ContestSubmissionResponse(BaseModel):
    id: int
    contest_id: int
    user_id: int
    answer: str
    points_spent: int
    is_correct: Optional[bool] = None
    reward_points_earned: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContestSubmitResponse(BaseModel):
    submission: ContestSubmissionResponse
    new_balance: int


class PublishAnswerRequest(BaseModel):
    correct_answer: str = Field(..., max_length=2000)


class PublishAnswerResponse(BaseModel):
    contest_id: int
    total_submissions: int
    correct_count: int
    total_points_awarded: int


class SubmissionStats(BaseModel):
    total: int
    correct: int
    incorrect: int
    pending: int


class SubmissionListResponse(BaseModel):
    submissions: List[ContestSubmissionResponse]
    stats: SubmissionStats
