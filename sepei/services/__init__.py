from .ballots import BallotOutcome, CastResult, cast_ballot, has_voted
from .polls import (
    count_ballots,
    create_poll,
    delete_poll,
    get_poll,
    list_active_polls,
    list_all_polls,
    list_published_polls,
    poll_exists,
    set_published,
    set_results_public,
    tabulate_results,
    update_poll,
)
from .sessions import (
    SessionUser,
    cleanup_expired_sessions,
    create_session,
    get_current_user,
    invalidate_all_user_sessions,
    invalidate_session,
    renew_session,
)
from .users import (
    authenticate_user,
    get_user,
    list_users,
    register_user,
    set_verified,
    set_voting_authorized,
)

__all__ = [
    # ballots
    "BallotOutcome",
    "CastResult",
    "cast_ballot",
    "has_voted",
    # polls
    "count_ballots",
    "create_poll",
    "delete_poll",
    "get_poll",
    "list_active_polls",
    "list_all_polls",
    "list_published_polls",
    "poll_exists",
    "set_published",
    "set_results_public",
    "tabulate_results",
    "update_poll",
    # sessions
    "SessionUser",
    "cleanup_expired_sessions",
    "create_session",
    "get_current_user",
    "invalidate_all_user_sessions",
    "invalidate_session",
    "renew_session",
    # users
    "authenticate_user",
    "get_user",
    "list_users",
    "register_user",
    "set_verified",
    "set_voting_authorized",
]
