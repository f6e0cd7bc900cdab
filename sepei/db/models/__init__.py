"""Database models."""
from sepei.db.models.user import User
from sepei.db.models.user_session import UserSession
from sepei.db.models.poll import Poll
from sepei.db.models.poll_option import PollOption
from sepei.db.models.participation import Participation
from sepei.db.models.ballot import Ballot

__all__ = ["User", "UserSession", "Poll", "PollOption", "Participation", "Ballot"]
