"""Poll repository: polls, their options and tabulated results.

Every public function follows the same failure policy: database errors are
rolled back, logged and turned into a safe default (empty list, ``None`` or
``False``) so that listing pages keep rendering when the store hiccups.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from sepei.core.constants import MIN_POLL_OPTIONS, POLL_KINDS
from sepei.core.logging_config import get_logger
from sepei.core.sanitization import normalize_voter_id
from sepei.core.utils import poll_status, to_utc, utcnow
from sepei.db.models import Ballot, Participation, Poll, PollOption
from sepei.services.sessions import SessionUser

logger = get_logger(__name__)

# Columns an administrator may set when creating or editing a poll.
# ``creado_por`` is only written by create_poll.
POLL_FIELDS = (
    "titulo",
    "descripcion",
    "tipo",
    "fecha_inicio",
    "fecha_fin",
    "publicado",
    "resultados_publicos",
    "multiple_respuestas",
)


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {key: value for key, value in fields.items() if key in POLL_FIELDS}
    for key in ("fecha_inicio", "fecha_fin"):
        if cleaned.get(key) is not None:
            cleaned[key] = to_utc(cleaned[key])
    return cleaned


def _validate_poll(titulo: Optional[str], tipo: Optional[str],
                   fecha_inicio: Optional[datetime], fecha_fin: Optional[datetime]) -> None:
    if not titulo:
        raise ValueError("Poll title cannot be empty")
    if tipo not in POLL_KINDS:
        raise ValueError(f"Poll kind must be one of {', '.join(POLL_KINDS)}")
    if fecha_inicio is None or fecha_fin is None:
        raise ValueError("Poll window needs both an opening and a closing time")
    if to_utc(fecha_fin) <= to_utc(fecha_inicio):
        raise ValueError("Closing time must be after opening time")


def _validate_options(option_texts: Sequence[str]) -> List[str]:
    texts = [text.strip() for text in option_texts if text and text.strip()]
    if len(texts) < MIN_POLL_OPTIONS:
        raise ValueError(f"A poll needs at least {MIN_POLL_OPTIONS} options")
    return texts


def _ballot_counts(db: Session, poll_ids: Sequence[int]) -> Dict[int, int]:
    """Ballot rows per poll, in one grouped query."""
    if not poll_ids:
        return {}
    rows = (
        db.query(Ballot.votacion_id, func.count(Ballot.id))
        .filter(Ballot.votacion_id.in_(poll_ids))
        .group_by(Ballot.votacion_id)
        .all()
    )
    return {poll_id: count for poll_id, count in rows}


def _has_multi_option_voters(db: Session, poll_id: int) -> bool:
    """Whether any voter holds more than one ballot row in the poll."""
    return (
        db.query(Ballot.user_id)
        .filter(Ballot.votacion_id == poll_id)
        .group_by(Ballot.user_id)
        .having(func.count(Ballot.id) > 1)
        .first()
    ) is not None


def _voted_poll_ids(db: Session, voter: Optional[SessionUser], poll_ids: Sequence[int]) -> Set[int]:
    voter_id = normalize_voter_id(voter.dni) if voter else ""
    if not voter_id or not poll_ids:
        return set()
    rows = (
        db.query(Participation.votacion_id)
        .filter(Participation.user_id == voter_id, Participation.votacion_id.in_(poll_ids))
        .all()
    )
    return {poll_id for (poll_id,) in rows}


def _serialize_poll(poll: Poll, total_votes: int, now: datetime) -> Dict[str, Any]:
    return {
        "id": poll.id,
        "titulo": poll.titulo,
        "descripcion": poll.descripcion,
        "tipo": poll.tipo,
        "fecha_inicio": to_utc(poll.fecha_inicio),
        "fecha_fin": to_utc(poll.fecha_fin),
        "publicado": poll.publicado,
        "resultados_publicos": poll.resultados_publicos,
        "multiple_respuestas": poll.multiple_respuestas,
        "creado_por": poll.creado_por,
        "fecha_creacion": to_utc(poll.fecha_creacion),
        "estado": poll_status(poll.fecha_inicio, poll.fecha_fin, now),
        "opciones": [
            {"id": option.id, "texto": option.texto, "orden": option.orden}
            for option in poll.options
        ],
        "total_votos": total_votes,
    }


def _annotate_for_member(
    db: Session, polls: Iterable[Poll], voter: Optional[SessionUser], now: datetime
) -> List[Dict[str, Any]]:
    """Add ballot counts, the caller's already-voted flag and public results."""
    polls = list(polls)
    poll_ids = [poll.id for poll in polls]
    counts = _ballot_counts(db, poll_ids)
    voted = _voted_poll_ids(db, voter, poll_ids)

    annotated = []
    for poll in polls:
        data = _serialize_poll(poll, counts.get(poll.id, 0), now)
        data["usuario_ya_voto"] = poll.id in voted
        data["resultados"] = _tabulate(db, poll.id) if poll.resultados_publicos else None
        annotated.append(data)
    return annotated


def list_all_polls(db: Session, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """All polls with options and ballot counts, newest first (admin view)."""
    now = now or utcnow()
    try:
        polls = (
            db.query(Poll)
            .options(selectinload(Poll.options))
            .order_by(Poll.fecha_creacion.desc(), Poll.id.desc())
            .all()
        )
        counts = _ballot_counts(db, [poll.id for poll in polls])
        return [_serialize_poll(poll, counts.get(poll.id, 0), now) for poll in polls]
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("list_all_polls_failed", error=str(e))
        return []


def list_published_polls(
    db: Session, voter: Optional[SessionUser] = None, now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Published polls, latest closing time first, annotated for the caller."""
    now = now or utcnow()
    try:
        polls = (
            db.query(Poll)
            .options(selectinload(Poll.options))
            .filter(Poll.publicado.is_(True))
            .order_by(Poll.fecha_fin.desc(), Poll.id.desc())
            .all()
        )
        return _annotate_for_member(db, polls, voter, now)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("list_published_polls_failed", error=str(e))
        return []


def list_active_polls(
    db: Session, voter: Optional[SessionUser] = None, now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Published polls whose window contains ``now``, closing soonest first.

    The window predicate runs in the query so that a single reference time
    decides which polls are active.
    """
    now = to_utc(now) if now is not None else utcnow()
    try:
        polls = (
            db.query(Poll)
            .options(selectinload(Poll.options))
            .filter(
                Poll.publicado.is_(True),
                Poll.fecha_inicio <= now,
                Poll.fecha_fin >= now,
            )
            .order_by(Poll.fecha_fin.asc(), Poll.id.asc())
            .all()
        )
        logger.debug("active_polls_listed", count=len(polls))
        return _annotate_for_member(db, polls, voter, now)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("list_active_polls_failed", error=str(e))
        return []


def poll_exists(db: Session, poll_id: int) -> bool:
    """Cheap existence check by primary key (False on failure)."""
    try:
        return db.get(Poll, poll_id) is not None
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("poll_exists_failed", poll_id=poll_id, error=str(e))
        return False


def get_poll(
    db: Session, poll_id: int, voter: Optional[SessionUser] = None, now: Optional[datetime] = None
) -> Optional[Dict[str, Any]]:
    """A single poll annotated for the caller, or None if it does not exist."""
    now = now or utcnow()
    try:
        poll = (
            db.query(Poll)
            .options(selectinload(Poll.options))
            .filter(Poll.id == poll_id)
            .first()
        )
        if poll is None:
            return None
        return _annotate_for_member(db, [poll], voter, now)[0]
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("get_poll_failed", poll_id=poll_id, error=str(e))
        return None


def create_poll(
    db: Session,
    fields: Dict[str, Any],
    option_texts: Sequence[str],
    created_by: Optional[str] = None,
) -> Optional[int]:
    """Create a poll together with its options.

    Options get ``orden`` 0..n-1 in the order given. The poll row and its
    options are written in one transaction, so a failed option insert never
    leaves an option-less poll behind.

    Returns:
        The new poll id, or None if the poll is invalid or could not be stored
    """
    values = _clean_fields(fields)
    values.setdefault("tipo", "votacion")
    if created_by is not None:
        values["creado_por"] = created_by

    try:
        _validate_poll(values.get("titulo"), values.get("tipo"),
                       values.get("fecha_inicio"), values.get("fecha_fin"))
        texts = _validate_options(option_texts)
    except ValueError as e:
        logger.warning("poll_create_rejected", reason=str(e))
        return None

    poll = Poll(**values)
    poll.options = [PollOption(texto=text, orden=index) for index, text in enumerate(texts)]

    try:
        db.add(poll)
        db.commit()
        db.refresh(poll)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("poll_create_failed", error=str(e))
        return None

    logger.info("poll_created", poll_id=poll.id, options=len(texts), tipo=poll.tipo)
    return poll.id


def update_poll(
    db: Session,
    poll_id: int,
    fields: Dict[str, Any],
    options: Optional[Sequence[str]] = None,
) -> bool:
    """Update poll fields and, optionally, replace its whole option set.

    Replacing options deletes the old ones with every ballot cast on them,
    and the poll's participations with them, so members can vote again on
    the new option set.

    Switching a poll to single-select is refused while some voter still
    holds several ballot rows in it, unless the options are replaced too.
    """
    try:
        poll = db.query(Poll).filter(Poll.id == poll_id).first()
        if poll is None:
            logger.warning("poll_update_not_found", poll_id=poll_id)
            return False

        values = _clean_fields(fields)
        try:
            _validate_poll(
                values.get("titulo", poll.titulo),
                values.get("tipo", poll.tipo),
                values.get("fecha_inicio", poll.fecha_inicio),
                values.get("fecha_fin", poll.fecha_fin),
            )
            texts = _validate_options(options) if options is not None else None
        except ValueError as e:
            logger.warning("poll_update_rejected", poll_id=poll_id, reason=str(e))
            return False

        # Ballots cast while the poll was multi-select only go away with an option replace
        if (poll.multiple_respuestas and values.get("multiple_respuestas") is False
                and texts is None and _has_multi_option_voters(db, poll_id)):
            logger.warning("poll_update_rejected", poll_id=poll_id, reason="multi-option ballots already cast")
            return False

        for key, value in values.items():
            setattr(poll, key, value)

        if texts is not None:
            db.query(Ballot).filter(Ballot.votacion_id == poll_id).delete(synchronize_session=False)
            db.query(Participation).filter(Participation.votacion_id == poll_id).delete(synchronize_session=False)
            db.query(PollOption).filter(PollOption.votacion_id == poll_id).delete(synchronize_session=False)
            db.add_all(
                PollOption(votacion_id=poll_id, texto=text, orden=index)
                for index, text in enumerate(texts)
            )

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("poll_update_failed", poll_id=poll_id, error=str(e))
        return False

    logger.info("poll_updated", poll_id=poll_id, options_replaced=texts is not None)
    return True


def delete_poll(db: Session, poll_id: int) -> bool:
    """Delete a poll; its options, participations and ballots go with it."""
    try:
        poll = db.query(Poll).filter(Poll.id == poll_id).first()
        if poll is None:
            return False

        db.delete(poll)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("poll_delete_failed", poll_id=poll_id, error=str(e))
        return False

    logger.info("poll_deleted", poll_id=poll_id)
    return True


def _set_flag(db: Session, poll_id: int, column: str, value: bool) -> bool:
    try:
        poll = db.query(Poll).filter(Poll.id == poll_id).first()
        if poll is None:
            return False
        setattr(poll, column, value)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("poll_flag_failed", poll_id=poll_id, flag=column, error=str(e))
        return False

    logger.info("poll_flag_changed", poll_id=poll_id, flag=column, value=value)
    return True


def set_published(db: Session, poll_id: int, value: bool) -> bool:
    """Show or hide a poll from members."""
    return _set_flag(db, poll_id, "publicado", value)


def set_results_public(db: Session, poll_id: int, value: bool) -> bool:
    """Show or hide a poll's tabulated results from members."""
    return _set_flag(db, poll_id, "resultados_publicos", value)


def count_ballots(db: Session, poll_id: int) -> int:
    """Number of ballot rows cast in a poll (0 on failure)."""
    try:
        return db.query(func.count(Ballot.id)).filter(Ballot.votacion_id == poll_id).scalar() or 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("count_ballots_failed", poll_id=poll_id, error=str(e))
        return 0


def _tabulate(db: Session, poll_id: int) -> List[Dict[str, Any]]:
    rows = (
        db.query(PollOption.id, PollOption.texto, func.count(Ballot.id))
        .outerjoin(Ballot, Ballot.opcion_id == PollOption.id)
        .filter(PollOption.votacion_id == poll_id)
        .group_by(PollOption.id, PollOption.texto, PollOption.orden)
        .order_by(PollOption.orden, PollOption.id)
        .all()
    )
    total = sum(count for _, _, count in rows)
    return [
        {
            "opcion_id": option_id,
            "texto": texto,
            "total_votos": count,
            "porcentaje": (count / total * 100) if total else 0.0,
        }
        for option_id, texto, count in rows
    ]


def tabulate_results(db: Session, poll_id: int) -> List[Dict[str, Any]]:
    """
    Per-option ballot counts and percentages for a poll.

    Rows follow the options' display order. ``porcentaje`` is the share of
    all ballot rows in the poll, 0 when nothing has been cast yet. Values
    are not rounded, so they may not add up to exactly 100.

    Returns an empty list for unknown polls and on database errors.
    """
    try:
        return _tabulate(db, poll_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("tabulate_results_failed", poll_id=poll_id, error=str(e))
        return []
