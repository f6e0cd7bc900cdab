"""Unit tests for the ballot casting protocol."""
import pytest
from dataclasses import replace
from datetime import timedelta
from unittest.mock import Mock, patch
from sqlalchemy.exc import IntegrityError, OperationalError

from sepei.core.utils import utcnow
from sepei.db.models import Ballot, Participation, Poll
from sepei.services.ballots import BallotOutcome, CastResult, cast_ballot, has_voted
from sepei.services.polls import count_ballots, get_poll, tabulate_results
from sepei.services.users import set_voting_authorized
from sepei.services.sessions import SessionUser


def _option_ids(db_session, poll_id):
    return [option["id"] for option in get_poll(db_session, poll_id)["opciones"]]


def _ballot_rows(db_session, poll_id, voter_id=None):
    query = db_session.query(Ballot).filter(Ballot.votacion_id == poll_id)
    if voter_id is not None:
        query = query.filter(Ballot.user_id == voter_id)
    return query.all()


@pytest.mark.unit
class TestCastBallot:
    """Test cast_ballot function."""

    def test_single_ballot_recorded(self, db_session, member, make_poll):
        poll_id = make_poll()
        turno_a, _ = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, member, poll_id, [turno_a])

        assert result
        assert result.outcome is BallotOutcome.RECORDED
        assert result.ballots_recorded == 1
        assert has_voted(db_session, member, poll_id) is True

        rows = _ballot_rows(db_session, poll_id)
        assert len(rows) == 1
        assert rows[0].user_id == "12345678Z"
        assert rows[0].user_email == member.email

    def test_second_cast_rejected_and_count_unchanged(self, db_session, member, make_poll):
        """Scenario: Turno A is recorded, a later Turno B is refused."""
        poll_id = make_poll()
        turno_a, turno_b = _option_ids(db_session, poll_id)

        assert cast_ballot(db_session, member, poll_id, [turno_a])
        second = cast_ballot(db_session, member, poll_id, [turno_b])

        assert not second
        assert second.outcome is BallotOutcome.ALREADY_VOTED
        assert second.message == "You have already voted in this poll"
        assert count_ballots(db_session, poll_id) == 1

        results = {row["texto"]: row["total_votos"] for row in tabulate_results(db_session, poll_id)}
        assert results == {"Turno A": 1, "Turno B": 0}

    def test_identifier_is_normalized_before_deduplication(self, db_session, member, make_poll):
        poll_id = make_poll()
        turno_a, turno_b = _option_ids(db_session, poll_id)
        assert cast_ballot(db_session, member, poll_id, [turno_a])

        spelled_differently = replace(member, dni=" 12345678-z")
        result = cast_ballot(db_session, spelled_differently, poll_id, [turno_b])

        assert result.outcome is BallotOutcome.ALREADY_VOTED
        assert count_ballots(db_session, poll_id) == 1

    def test_poll_not_open_yet(self, db_session, member, make_poll):
        now = utcnow()
        poll_id = make_poll(start=now + timedelta(hours=1), end=now + timedelta(hours=2))
        turno_a, _ = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, member, poll_id, [turno_a])

        assert result.outcome is BallotOutcome.POLL_NOT_OPEN
        assert result.message == "Voting has not started yet"
        assert count_ballots(db_session, poll_id) == 0

    def test_poll_already_closed(self, db_session, member, make_poll):
        now = utcnow()
        poll_id = make_poll(start=now - timedelta(days=2), end=now - timedelta(days=1))
        turno_a, _ = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, member, poll_id, [turno_a])

        assert result.outcome is BallotOutcome.POLL_CLOSED
        assert count_ballots(db_session, poll_id) == 0

    def test_window_bounds_are_inclusive(self, db_session, member, make_poll):
        now = utcnow()
        poll_id = make_poll(start=now - timedelta(hours=1), end=now + timedelta(hours=1))
        turno_a, _ = _option_ids(db_session, poll_id)
        poll = db_session.query(Poll).filter(Poll.id == poll_id).first()

        result = cast_ballot(db_session, member, poll_id, [turno_a], now=poll.fecha_fin)

        assert result.outcome is BallotOutcome.RECORDED

    def test_unauthorized_member_until_flag_is_granted(self, db_session, make_user, make_poll):
        user = make_user(authorized=False)
        poll_id = make_poll()
        turno_a, turno_b = _option_ids(db_session, poll_id)

        refused = cast_ballot(db_session, SessionUser.from_user(user), poll_id, [turno_a])
        assert refused.outcome is BallotOutcome.NOT_AUTHORIZED

        assert set_voting_authorized(db_session, user.id, True)
        db_session.refresh(user)
        voter = SessionUser.from_user(user)

        assert cast_ballot(db_session, voter, poll_id, [turno_a])
        assert cast_ballot(db_session, voter, poll_id, [turno_b]).outcome is BallotOutcome.ALREADY_VOTED
        assert count_ballots(db_session, poll_id) == 1

    def test_anonymous_caller(self, db_session, make_poll):
        poll_id = make_poll()
        result = cast_ballot(db_session, None, poll_id, [1])
        assert result.outcome is BallotOutcome.NOT_AUTHENTICATED

    def test_unverified_identity(self, db_session, make_user, make_poll):
        voter = SessionUser.from_user(make_user(verified=False))
        poll_id = make_poll()
        turno_a, _ = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, voter, poll_id, [turno_a])

        assert result.outcome is BallotOutcome.IDENTITY_INCOMPLETE

    @pytest.mark.parametrize("missing", ["dni", "email"])
    def test_missing_identifier_or_email(self, db_session, member, make_poll, missing):
        poll_id = make_poll()
        turno_a, _ = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, replace(member, **{missing: ""}), poll_id, [turno_a])

        assert result.outcome is BallotOutcome.IDENTITY_INCOMPLETE

    def test_identity_checked_before_authorization(self, db_session, make_user, make_poll):
        voter = SessionUser.from_user(make_user(verified=False, authorized=False))
        poll_id = make_poll()

        result = cast_ballot(db_session, voter, poll_id, [1])

        assert result.outcome is BallotOutcome.IDENTITY_INCOMPLETE

    def test_unknown_poll(self, db_session, member):
        result = cast_ballot(db_session, member, 999, [1])
        assert result.outcome is BallotOutcome.POLL_NOT_FOUND

    def test_unpublished_poll(self, db_session, member, make_poll):
        poll_id = make_poll(publicado=False)
        turno_a, _ = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, member, poll_id, [turno_a])

        assert result.outcome is BallotOutcome.POLL_NOT_PUBLISHED

    def test_empty_selection(self, db_session, member, make_poll):
        poll_id = make_poll()
        assert cast_ballot(db_session, member, poll_id, []).outcome is BallotOutcome.INVALID_SELECTION
        assert has_voted(db_session, member, poll_id) is False

    def test_several_options_on_single_select_poll(self, db_session, member, make_poll):
        poll_id = make_poll()
        turno_a, turno_b = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, member, poll_id, [turno_a, turno_b])

        assert result.outcome is BallotOutcome.INVALID_SELECTION
        assert count_ballots(db_session, poll_id) == 0

    def test_option_from_another_poll(self, db_session, member, make_poll):
        poll_id = make_poll()
        other_poll_id = make_poll(titulo="Uniformes")
        foreign_option, _ = _option_ids(db_session, other_poll_id)

        result = cast_ballot(db_session, member, poll_id, [foreign_option])

        assert result.outcome is BallotOutcome.INVALID_SELECTION

    def test_repeated_option_ids(self, db_session, member, make_poll):
        poll_id = make_poll(options=["X", "Y", "Z"], multiple_respuestas=True)
        x, _, _ = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, member, poll_id, [x, x])

        assert result.outcome is BallotOutcome.INVALID_SELECTION

    def test_multi_select_records_one_row_per_option(self, db_session, member, make_poll):
        """Scenario: X and Z on a multi-select poll tabulate as 50/0/50."""
        poll_id = make_poll(options=["X", "Y", "Z"], multiple_respuestas=True)
        x, _, z = _option_ids(db_session, poll_id)

        result = cast_ballot(db_session, member, poll_id, [x, z])

        assert result.outcome is BallotOutcome.RECORDED
        assert result.ballots_recorded == 2
        rows = _ballot_rows(db_session, poll_id)
        assert len(rows) == 2
        assert {row.user_id for row in rows} == {"12345678Z"}
        assert len({row.fecha_voto for row in rows}) == 1

        participations = db_session.query(Participation).filter(Participation.votacion_id == poll_id).all()
        assert len(participations) == 1

        results = [(row["texto"], row["total_votos"], row["porcentaje"]) for row in tabulate_results(db_session, poll_id)]
        assert results == [("X", 1, 50.0), ("Y", 0, 0.0), ("Z", 1, 50.0)]

    def test_multi_select_allows_one_voting_event_only(self, db_session, member, make_poll):
        poll_id = make_poll(options=["X", "Y", "Z"], multiple_respuestas=True)
        x, y, z = _option_ids(db_session, poll_id)

        assert cast_ballot(db_session, member, poll_id, [x])
        result = cast_ballot(db_session, member, poll_id, [y, z])

        assert result.outcome is BallotOutcome.ALREADY_VOTED
        assert count_ballots(db_session, poll_id) == 1

    def test_lost_race_maps_to_already_voted(self, db_session, member, make_poll):
        """The unique constraint catches a concurrent cast the pre-check missed."""
        poll_id = make_poll()
        turno_a, turno_b = _option_ids(db_session, poll_id)
        assert cast_ballot(db_session, member, poll_id, [turno_a])

        with patch("sepei.services.ballots._participation_exists", return_value=False):
            result = cast_ballot(db_session, member, poll_id, [turno_b])

        assert result.outcome is BallotOutcome.ALREADY_VOTED
        assert count_ballots(db_session, poll_id) == 1
        assert len(_ballot_rows(db_session, poll_id, "12345678Z")) == 1

    def test_store_failure_on_commit(self, db_session, member, make_poll):
        poll_id = make_poll()
        turno_a, _ = _option_ids(db_session, poll_id)
        error = OperationalError("INSERT INTO votos", {}, Exception("database is locked"))

        with patch.object(db_session, "commit", side_effect=error):
            result = cast_ballot(db_session, member, poll_id, [turno_a])

        assert result.outcome is BallotOutcome.STORE_FAILURE
        assert not result
        assert has_voted(db_session, member, poll_id) is False


@pytest.mark.unit
class TestCastBallotWithMockSession:
    """Failure handling with a mocked database session."""

    def _mock_db(self, poll):
        mock_db = Mock()

        mock_poll_query = Mock()
        mock_poll_query.filter.return_value = mock_poll_query
        mock_poll_query.first.return_value = poll

        mock_option_query = Mock()
        mock_option_query.filter.return_value = mock_option_query
        mock_option_query.all.return_value = [(1,)]

        def query_side_effect(model):
            if model is Poll:
                return mock_poll_query
            return mock_option_query

        mock_db.query.side_effect = query_side_effect
        return mock_db

    def _open_poll(self):
        now = utcnow()
        mock_poll = Mock(spec=Poll)
        mock_poll.id = 1
        mock_poll.publicado = True
        mock_poll.multiple_respuestas = False
        mock_poll.fecha_inicio = now - timedelta(hours=1)
        mock_poll.fecha_fin = now + timedelta(hours=1)
        return mock_poll

    @patch("sepei.services.ballots._participation_exists", return_value=False)
    def test_postgres_constraint_name_is_a_duplicate(self, _exists, member):
        mock_db = self._mock_db(self._open_poll())
        mock_orig_error = Exception(
            'duplicate key value violates unique constraint "uq_participacion_votacion_user"'
        )
        mock_db.commit.side_effect = IntegrityError("statement", {}, mock_orig_error)

        result = cast_ballot(mock_db, member, 1, [1])

        assert result.outcome is BallotOutcome.ALREADY_VOTED
        mock_db.rollback.assert_called_once()

    @patch("sepei.services.ballots._participation_exists", return_value=False)
    def test_other_integrity_error_is_a_store_failure(self, _exists, member):
        mock_db = self._mock_db(self._open_poll())
        mock_orig_error = Exception('insert or update violates foreign key constraint "votos_opcion_id_fkey"')
        mock_db.commit.side_effect = IntegrityError("statement", {}, mock_orig_error)

        result = cast_ballot(mock_db, member, 1, [1])

        assert result.outcome is BallotOutcome.STORE_FAILURE
        mock_db.rollback.assert_called_once()

    @patch("sepei.services.ballots._participation_exists")
    def test_failed_pre_check_is_a_store_failure(self, mock_exists, member):
        mock_exists.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))
        mock_db = Mock()

        result = cast_ballot(mock_db, member, 1, [1])

        assert result.outcome is BallotOutcome.STORE_FAILURE
        mock_db.add.assert_not_called()
        mock_db.rollback.assert_called_once()


@pytest.mark.unit
class TestBallotOutcome:
    def test_only_recorded_is_success(self):
        assert [outcome for outcome in BallotOutcome if outcome.is_success] == [BallotOutcome.RECORDED]

    def test_every_outcome_has_a_message(self):
        for outcome in BallotOutcome:
            assert outcome.message

    def test_cast_result_truthiness(self):
        assert CastResult(BallotOutcome.RECORDED, ballots_recorded=1)
        assert not CastResult(BallotOutcome.POLL_CLOSED)
        assert CastResult(BallotOutcome.POLL_CLOSED).message == "Voting has ended"


@pytest.mark.unit
class TestHasVoted:
    def test_anonymous_caller_has_not_voted(self, db_session, make_poll):
        assert has_voted(db_session, None, make_poll()) is False

    def test_only_the_caller_is_considered(self, db_session, member, other_member, make_poll):
        poll_id = make_poll()
        turno_a, _ = _option_ids(db_session, poll_id)
        assert cast_ballot(db_session, member, poll_id, [turno_a])

        assert has_voted(db_session, member, poll_id) is True
        assert has_voted(db_session, other_member, poll_id) is False

    def test_store_failure_reads_as_not_voted(self, member):
        mock_db = Mock()
        mock_db.query.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        assert has_voted(mock_db, member, 1) is False
        mock_db.rollback.assert_called_once()
