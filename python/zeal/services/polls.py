"""Poll voting and expiry.

Each user holds at most one vote per poll (uq_poll_votes_voter). Voting
again moves the vote to another option. Option counts and total_votes are
changed with SQL increments so concurrent voters do not lose updates.

A poll accepts votes while it is active and ends_at is in the future. Once
ends_at passes it is expired by the expire_polls beat job, or earlier by the
first vote or read that notices.
"""

import math
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeal.db.models import Poll, PollOption, PollStatus, PollVote
from zeal.errors import ApiErrorCode, ConflictError, InvalidRequestError, NotFoundError
from zeal.logging import get_logger
from zeal.schemas.content import PollOptionOut, PollOut

logger = get_logger(__name__)


def poll_to_out(poll: Poll, user_vote: UUID | None = None) -> PollOut:
    """Serialize a poll; percentages are shares of total_votes rounded half up."""
    total = poll.total_votes

    def option_out(option: PollOption) -> PollOptionOut:
        out = PollOptionOut.model_validate(option)
        out.vote_percentage = math.floor(option.vote_count * 100 / total + 0.5) if total else 0
        return out

    return PollOut(
        id=poll.id,
        author_id=poll.author_id,
        caption=poll.caption,
        options=[option_out(o) for o in poll.options],
        total_votes=total,
        status=poll.status,
        ends_at=poll.ends_at,
        created_at=poll.created_at,
        updated_at=poll.updated_at,
        user_vote=user_vote,
    )


def get_user_vote(db: Session, poll_id: UUID, user_id: UUID) -> UUID | None:
    """Option the user voted for, if any."""
    return db.execute(
        select(PollVote.option_id).where(PollVote.poll_id == poll_id, PollVote.user_id == user_id)
    ).scalar_one_or_none()


def expire_poll_if_due(db: Session, poll: Poll, now: datetime | None = None) -> bool:
    """Expire one poll whose end time has passed. Returns True if this call expired it."""
    now = now or datetime.now(UTC)
    if poll.status != PollStatus.active or poll.ends_at > now:
        return False

    result = db.execute(
        update(Poll)
        .where(Poll.id == poll.id, Poll.status == PollStatus.active, Poll.ends_at <= now)
        .values(status=PollStatus.expired, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(poll)
    return result.rowcount == 1


def expire_polls(db: Session, now: datetime | None = None) -> int:
    """Expire every active poll past its end time. Idempotent.

    Returns:
        Number of polls moved to expired by this run.
    """
    now = now or datetime.now(UTC)
    expired = db.execute(
        update(Poll)
        .where(Poll.status == PollStatus.active, Poll.ends_at <= now)
        .values(status=PollStatus.expired, updated_at=now)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    if expired:
        logger.info("polls_expired", count=expired)
    return expired


def _bump_option(db: Session, option_id: UUID, delta: int) -> None:
    stmt = update(PollOption).where(PollOption.id == option_id)
    if delta < 0:
        stmt = stmt.where(PollOption.vote_count > 0)
    db.execute(
        stmt.values(vote_count=PollOption.vote_count + delta).execution_options(
            synchronize_session=False
        )
    )


def vote_poll(
    db: Session,
    user_id: UUID,
    poll_id: UUID,
    option_id: UUID,
    *,
    retry_on_conflict: bool = True,
) -> PollOut:
    """Record the user's vote, or move it to option_id if they already voted.

    Voting for the option the user already holds changes nothing.

    Raises:
        NotFoundError(E_CONTENT_NOT_FOUND): Poll does not exist.
        ConflictError(E_POLL_EXPIRED): Poll is expired or past ends_at.
        InvalidRequestError(E_INVALID_REQUEST): Option is not one of this poll's options.
    """
    now = datetime.now(UTC)
    poll = db.get(Poll, poll_id)
    if poll is None:
        raise NotFoundError(ApiErrorCode.E_CONTENT_NOT_FOUND, "Poll not found")
    if poll.status != PollStatus.active or poll.ends_at <= now:
        expire_poll_if_due(db, poll, now)
        raise ConflictError(ApiErrorCode.E_POLL_EXPIRED, "Poll has expired")

    option = db.get(PollOption, option_id)
    if option is None or option.poll_id != poll.id:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Invalid option for this poll")

    existing = db.execute(
        select(PollVote).where(PollVote.poll_id == poll.id, PollVote.user_id == user_id)
    ).scalar_one_or_none()

    if existing is None:
        db.add(PollVote(poll_id=poll.id, option_id=option.id, user_id=user_id))
        try:
            db.flush()
        except IntegrityError:
            # A concurrent first vote from the same user won; move that vote instead.
            db.rollback()
            if not retry_on_conflict:
                raise
            return vote_poll(db, user_id, poll_id, option_id, retry_on_conflict=False)
        _bump_option(db, option.id, 1)
        db.execute(
            update(Poll)
            .where(Poll.id == poll.id)
            .values(total_votes=Poll.total_votes + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
    elif existing.option_id != option.id:
        _bump_option(db, existing.option_id, -1)
        _bump_option(db, option.id, 1)
        existing.option_id = option.id
        existing.updated_at = now

    db.commit()
    db.expire_all()

    logger.info("poll_voted", poll_id=str(poll_id), option_id=str(option_id))
    return poll_to_out(poll, user_vote=option.id)
