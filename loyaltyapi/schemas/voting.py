from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from loyaltyapi.models.voting import EntryStatus, VotingFrequency


class CampaignCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    points_per_vote: int = Field(0, ge=0)
    max_votes_per_user: int = Field(1, ge=1)
    voting_frequency: VotingFrequency = VotingFrequency.ONCE

    @model_validator(mode="after")
    def check_window(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class EntryCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: EntryStatus = EntryStatus.APPROVED


class EntryResponse(BaseModel):
    id: int
    campaign_id: int
    title: str
    description: Optional[str] = None
    vote_count: int
    status: str
    is_active: bool

    class Config:
        from_attributes = True


class CampaignResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    points_per_vote: int
    max_votes_per_user: int
    voting_frequency: str
    status: str
    is_active: bool
    entries: List[EntryResponse] = []

    class Config:
        from_attributes = True


class VoteResponse(BaseModel):
    vote_id: int
    campaign_id: int
    entry_id: int
    vote_count: int
    points_awarded: int
    new_balance: int


class RemoveVoteResponse(BaseModel):
    campaign_id: int
    entry_id: int
    vote_count: int
    points_deducted: int
    new_balance: int


class UserVoteResponse(BaseModel):
    id: int
    campaign_id: int
    entry_id: int
    vote_date: datetime
    points_awarded: int

    class Config:
        from_attributes = True
