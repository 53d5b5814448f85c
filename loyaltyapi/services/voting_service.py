import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from loyaltyapi.core.exceptions import (
    AlreadyProcessedError,
    NotFoundError,
    VoteLimitError,
    VotingClosedError,
)
from loyaltyapi.database.session import transactional
from loyaltyapi.models.points import PointReason
from loyaltyapi.models.voting import CampaignStatus, VotingCampaign, VotingFrequency
from loyaltyapi.repositories.user_repository import UserRepository
from loyaltyapi.repositories.voting_repository import VotingRepository
from loyaltyapi.schemas.voting import (
    CampaignCreateRequest,
    CampaignResponse,
    EntryCreateRequest,
    EntryResponse,
    RemoveVoteResponse,
    UserVoteResponse,
    VoteResponse,
)
from loyaltyapi.services.ledger_service import LedgerService
from loyaltyapi.utils.timezone_utils import as_utc, local_day_bounds, now_utc

logger = logging.getLogger(__name__)


class VotingService:
    """
    투표/투표 취소

    투표 기록, 후보 vote_count, 포인트 적립은 항상 한 트랜잭션에서 함께 움직인다.
    """

    def __init__(self, db: Session):
        self.db = db
        self.voting_repo = VotingRepository(db)
        self.user_repo = UserRepository(db)
        self.ledger = LedgerService(db)

    def vote(self, campaign_id: int, entry_id: int, user_id: int) -> VoteResponse:
        with transactional(self.db):
            campaign = self._get_open_campaign(campaign_id)
            entry = self.voting_repo.get_entry(entry_id, campaign_id)
            if entry is None or not entry.is_votable:
                raise NotFoundError(
                    "Entry not found or not open for voting",
                    details={"entry_id": entry_id},
                )

            # 같은 사용자의 동시 투표를 직렬화 (한도 검사 경합 방지)
            if self.user_repo.get_model(user_id, for_update=True) is None:
                raise NotFoundError("User not found", details={"user_id": user_id})

            if self.voting_repo.find_vote(user_id, campaign_id, entry_id) is not None:
                raise AlreadyProcessedError(
                    "You have already voted for this entry",
                    details={"entry_id": entry_id},
                )
            total_votes = self.voting_repo.count_user_votes(user_id, campaign_id)
            if total_votes >= campaign.max_votes_per_user:
                raise VoteLimitError(
                    "Maximum votes for this campaign reached",
                    details={"max_votes_per_user": campaign.max_votes_per_user},
                )
            if campaign.voting_frequency == VotingFrequency.DAILY.value:
                day_start, day_end = local_day_bounds()
                if self.voting_repo.count_user_votes(
                    user_id, campaign_id, since=day_start, until=day_end
                ):
                    raise VoteLimitError("You have already voted today")

            points = campaign.points_per_vote or 0
            try:
                with self.db.begin_nested():
                    vote = self.voting_repo.add_vote(
                        user_id=user_id,
                        campaign_id=campaign_id,
                        entry_id=entry_id,
                        vote_date=now_utc(),
                        points_awarded=points,
                    )
            except IntegrityError as e:
                raise AlreadyProcessedError(
                    "You have already voted for this entry",
                    details={"entry_id": entry_id},
                ) from e

            self.voting_repo.change_vote_count(entry_id, 1)
            if points > 0:
                new_balance = self.ledger.apply_entry(
                    user_id=user_id,
                    amount=points,
                    reason=PointReason.VOTE,
                    idempotency_key=f"vote:{vote.id}",
                    notes=f"Vote in campaign: {campaign.title}",
                ).new_balance
            else:
                new_balance = self.user_repo.get_points(user_id)

        logger.info(
            f"User {user_id} voted for entry {entry_id} in campaign {campaign_id} (vote {vote.id})"
        )
        return VoteResponse(
            vote_id=vote.id,
            campaign_id=campaign_id,
            entry_id=entry_id,
            vote_count=entry.vote_count,
            points_awarded=points,
            new_balance=new_balance,
        )

    def remove_vote(
        self, campaign_id: int, entry_id: int, user_id: int
    ) -> RemoveVoteResponse:
        """투표 취소 - 기록 삭제, vote_count 감소, 투표 적립분 회수 (vote-removal)"""
        with transactional(self.db):
            campaign = self._get_open_campaign(campaign_id)
            vote = self.voting_repo.find_vote(user_id, campaign_id, entry_id)
            if vote is None:
                raise NotFoundError("Vote not found", details={"entry_id": entry_id})

            points_deducted = 0
            credit = self.ledger.find_by_key(f"vote:{vote.id}")
            if credit is not None:
                # 잔액이 부족하면 InsufficientBalanceError 로 취소 전체 거부
                self.ledger.reverse_entry(
                    credit.id,
                    reason=PointReason.VOTE_REMOVAL,
                    idempotency_key=f"vote:{vote.id}:removal",
                    notes=f"Vote removed in campaign: {campaign.title}",
                )
                points_deducted = credit.amount

            self.voting_repo.delete_vote(vote)
            self.voting_repo.change_vote_count(entry_id, -1)
            entry = self.voting_repo.get_entry(entry_id, campaign_id)
            new_balance = self.user_repo.get_points(user_id)

        logger.info(
            f"User {user_id} removed vote on entry {entry_id} in campaign {campaign_id}"
        )
        return RemoveVoteResponse(
            campaign_id=campaign_id,
            entry_id=entry_id,
            vote_count=entry.vote_count if entry is not None else 0,
            points_deducted=points_deducted,
            new_balance=new_balance,
        )

    def create_campaign(
        self, admin_id: int, request: CampaignCreateRequest
    ) -> CampaignResponse:
        with transactional(self.db):
            campaign = self.voting_repo.add(
                title=request.title,
                description=request.description,
                start_date=as_utc(request.start_date),
                end_date=as_utc(request.end_date),
                points_per_vote=request.points_per_vote,
                max_votes_per_user=request.max_votes_per_user,
                voting_frequency=request.voting_frequency.value,
                status=CampaignStatus.ACTIVE.value,
                is_active=True,
                created_by=admin_id,
            )
        logger.info(f"Voting campaign {campaign.id} created by admin {admin_id}")
        return self.voting_repo._to_schema(campaign)

    def add_entry(
        self, campaign_id: int, admin_id: int, request: EntryCreateRequest
    ) -> EntryResponse:
        with transactional(self.db):
            if self.voting_repo.get_model(campaign_id) is None:
                raise NotFoundError(
                    "Campaign not found", details={"campaign_id": campaign_id}
                )
            entry = self.voting_repo.add_entry(
                campaign_id=campaign_id,
                title=request.title,
                description=request.description,
                submitted_by=admin_id,
                vote_count=0,
                status=request.status.value,
                is_active=True,
            )
        return EntryResponse.model_validate(entry)

    def get_campaign(
        self, campaign_id: int, votable_only: bool = True
    ) -> CampaignResponse:
        campaign = self.voting_repo.get_model(campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign not found", details={"campaign_id": campaign_id})
        response = self.voting_repo._to_schema(campaign)
        if votable_only:
            response.entries = [
                EntryResponse.model_validate(e) for e in campaign.entries if e.is_votable
            ]
        return response

    def get_user_voting_history(
        self, user_id: int, campaign_id: Optional[int] = None
    ) -> List[UserVoteResponse]:
        return self.voting_repo.get_user_votes(user_id, campaign_id)

    def _get_open_campaign(self, campaign_id: int) -> VotingCampaign:
        campaign = self.voting_repo.get_model(campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign not found", details={"campaign_id": campaign_id})
        if not campaign.is_voting_open():
            raise VotingClosedError(details={"campaign_id": campaign_id})
        return campaign
