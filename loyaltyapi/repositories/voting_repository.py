from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from loyaltyapi.models.voting import UserVote, VoteEntry
from loyaltyapi.models.voting import VotingCampaign as VotingCampaignModel
from loyaltyapi.repositories.base import BaseRepository
from loyaltyapi.schemas.voting import CampaignResponse, UserVoteResponse


class VotingRepository(BaseRepository[VotingCampaignModel, CampaignResponse]):
    """투표 캠페인/후보/투표 기록 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(VotingCampaignModel, CampaignResponse, db)

    def get_entry(self, entry_id: int, campaign_id: int) -> Optional[VoteEntry]:
        return (
            self.db.query(VoteEntry)
            .filter(VoteEntry.id == entry_id, VoteEntry.campaign_id == campaign_id)
            .first()
        )

    def add_entry(self, **fields) -> VoteEntry:
        entry = VoteEntry(**fields)
        self.db.add(entry)
        self.db.flush()
        return entry

    def find_vote(
        self, user_id: int, campaign_id: int, entry_id: int
    ) -> Optional[UserVote]:
        return (
            self.db.query(UserVote)
            .filter(
                UserVote.user_id == user_id,
                UserVote.campaign_id == campaign_id,
                UserVote.entry_id == entry_id,
            )
            .first()
        )

    def count_user_votes(
        self,
        user_id: int,
        campaign_id: int,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        query = self.db.query(func.count(UserVote.id)).filter(
            UserVote.user_id == user_id, UserVote.campaign_id == campaign_id
        )
        if since is not None:
            query = query.filter(UserVote.vote_date >= since)
        if until is not None:
            query = query.filter(UserVote.vote_date < until)
        return query.scalar() or 0

    def add_vote(self, **fields) -> UserVote:
        vote = UserVote(**fields)
        self.db.add(vote)
        self.db.flush()
        return vote

    def delete_vote(self, vote: UserVote) -> None:
        self.db.delete(vote)
        self.db.flush()

    def change_vote_count(self, entry_id: int, delta: int) -> None:
        """vote_count 를 원자적으로 증감 (0 미만으로 내려가지 않음)"""
        new_count = VoteEntry.vote_count + delta
        stmt = (
            update(VoteEntry)
            .where(VoteEntry.id == entry_id)
            .values(vote_count=case((new_count < 0, 0), else_=new_count))
            .execution_options(synchronize_session="fetch")
        )
        self.db.execute(stmt)

    def count_entry_votes(self, entry_id: int) -> int:
        return (
            self.db.query(func.count(UserVote.id))
            .filter(UserVote.entry_id == entry_id)
            .scalar()
            or 0
        )

    def get_user_votes(
        self, user_id: int, campaign_id: Optional[int] = None
    ) -> List[UserVoteResponse]:
        query = self.db.query(UserVote).filter(UserVote.user_id == user_id)
        if campaign_id is not None:
            query = query.filter(UserVote.campaign_id == campaign_id)
        return [
            UserVoteResponse.model_validate(v)
            for v in query.order_by(UserVote.id.desc()).all()
        ]
