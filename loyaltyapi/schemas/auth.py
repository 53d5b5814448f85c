from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ErrorCode(str, Enum):
    # Auth related
    UNAUTHORIZED = "AUTH_001"
    FORBIDDEN = "AUTH_002"

    # Request / resource
    VALIDATION = "VALIDATION_001"
    NOT_FOUND = "NOT_FOUND_001"
    CONFLICT = "CONFLICT_001"

    # Settlement
    INSUFFICIENT_BALANCE = "BALANCE_001"
    ORDER_TRANSITION = "ORDER_TRANSITION"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    CONTEST_CLOSED = "CONTEST_CLOSED"
    VOTING_CLOSED = "VOTING_CLOSED"
    VOTE_LIMIT = "VOTE_LIMIT"
    TX_ABORTED = "TX_ABORTED"

    INTERNAL = "INTERNAL_001"


class Error(BaseModel):
    code: ErrorCode
    message: str
    details: Optional[dict] = None


class BaseResponse(BaseModel):
    success: bool = True
    data: Optional[dict] = None
    error: Optional[Error] = None
    meta: Optional[dict] = None
