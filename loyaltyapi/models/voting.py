from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from loyaltyapi.models.base import Base, BaseModel, BigIntPK
from loyaltyapi.utils.timezone_utils import as_utc, now_utc


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VotingFrequency(str, Enum):
    ONCE = "once"
    DAILY = "daily"


class EntryStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VotingCampaign(BaseModel):
    __tablename__ = "voting_campaigns"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    points_per_vote = Column(Integer, nullable=False, default=0)
    max_votes_per_user = Column(Integer, nullable=False, default=1)
    voting_frequency = Column(
        String(16), nullable=False, default=VotingFrequency.ONCE.value
    )
    status = Column(String(16), nullable=False, default=CampaignStatus.ACTIVE.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(BigInteger, ForeignKey("users.id"), nullable=True)

    entries = relationship(
        "VoteEntry", back_populates="campaign", order_by="VoteEntry.id"
    )

    def is_voting_open(self, now: Optional[datetime] = None) -> bool:
        now = as_utc(now or now_utc())
        return (
            bool(self.is_active)
            and self.status != CampaignStatus.CANCELLED.value
            and as_utc(self.start_date) <= now <= as_utc(self.end_date)
        )


class VoteEntry(BaseModel):
    __tablename__ = "vote_entries"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    campaign_id = Column(
        BigInteger, ForeignKey("voting_campaigns.id"), nullable=False, index=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    submitted_by = Column(BigInteger, ForeignKey("users.id"), nullable=True)
    vote_count = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default=EntryStatus.APPROVED.value)
    is_active = Column(Boolean, nullable=False, default=True)

    campaign = relationship("VotingCampaign", back_populates="entries")

    @property
    def is_votable(self) -> bool:
        return bool(self.is_active) and self.status == EntryStatus.APPROVED.value


class UserVote(Base):
    """
    투표 기록. (user, campaign, entry) 당 하나.

    투표 id 로 원장 멱등성 키(vote:<id>)를 만들기 때문에 삭제된 id 가
    재사용되지 않도록 SQLite 에서도 AUTOINCREMENT 를 사용한다.
    """

    __tablename__ = "user_votes"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "campaign_id", "entry_id", name="uq_user_votes_user_entry"
        ),
        {"sqlite_autoincrement": True},
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    campaign_id = Column(
        BigInteger, ForeignKey("voting_campaigns.id"), nullable=False, index=True
    )
    entry_id = Column(BigInteger, ForeignKey("vote_entries.id"), nullable=False)
    vote_date = Column(DateTime(timezone=True), nullable=False, default=now_utc)
    points_awarded = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
