"""Ballot schemas."""
from typing import List
from pydantic import BaseModel, Field

from sepei.core.constants import MAX_POLL_OPTIONS


class BallotRequest(BaseModel):
    # Emptiness is judged by the casting protocol, not here
    option_ids: List[int] = Field(default_factory=list, max_length=MAX_POLL_OPTIONS)


class BallotResponse(BaseModel):
    success: bool
    outcome: str
    message: str


class HasVotedResponse(BaseModel):
    poll_id: int
    has_voted: bool
