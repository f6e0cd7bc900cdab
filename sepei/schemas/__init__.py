"""Pydantic schemas for request/response validation."""
from sepei.schemas.auth import (
    AdminLoginRequest,
    LoginResponse,
    MemberLoginRequest,
    MemberProfile,
    RegisterRequest,
    RegisterResponse,
)
from sepei.schemas.poll import (
    MemberPoll,
    OptionDetail,
    PollCreate,
    PollDetail,
    PollResponse,
    PollUpdate,
    ResultRow,
)
from sepei.schemas.ballot import BallotRequest, BallotResponse, HasVotedResponse
from sepei.schemas.common import SuccessResponse, ErrorResponse, ErrorDetail, FlagUpdate

__all__ = [
    "AdminLoginRequest",
    "LoginResponse",
    "MemberLoginRequest",
    "MemberProfile",
    "RegisterRequest",
    "RegisterResponse",
    "MemberPoll",
    "OptionDetail",
    "PollCreate",
    "PollDetail",
    "PollResponse",
    "PollUpdate",
    "ResultRow",
    "BallotRequest",
    "BallotResponse",
    "HasVotedResponse",
    "SuccessResponse",
    "ErrorResponse",
    "ErrorDetail",
    "FlagUpdate",
]
