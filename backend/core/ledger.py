"""The vote ledger: exactly-once vote recording and live tallies.

``cast_vote`` runs every precondition and the write inside one transaction.
The per-(election, voter) ``VoterRecord`` row is locked before the
already-voted check, and the unique constraint on ``Vote(election,
voter_id)`` backs it up on databases without row locks: a second writer that
slips past the check hits the constraint and gets AlreadyVotedError.
The candidate row is locked too, so a cast and a decision on that candidate
never interleave.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from . import errors
from .audit import audit
from .eligibility import EligibilityStore
from .elections import ElectionRegistry
from .identity import Identity
from .models import AllowlistEntry, AuditLog, Candidate, Election, Vote, VoterRecord
from .phase import ACTIVE
from .retry import with_retry
from .signals import vote_committed, vote_recorded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TallyRow:
    candidate_id: str
    name: str
    position: str
    votes: int
    percentage: float


@dataclass(frozen=True)
class Turnout:
    total_voters: int
    total_votes: int
    pending: int


@dataclass(frozen=True)
class ElectionStats:
    turnout: Turnout
    results: List[TallyRow] = field(default_factory=list)


def percentage(votes, total) -> float:
    if not total:
        return 0.0
    return votes / total * 100


class VoteLedger:

    def __init__(self, elections=None, eligibility=None, clock=None):
        self.clock = clock or (elections.clock if elections else timezone.now)
        self.elections = elections or ElectionRegistry(clock=self.clock)
        self.eligibility = eligibility or EligibilityStore()

    def cast_vote(self, election_id, candidate_id, voter: Identity) -> str:
        vote = self._cast(election_id, candidate_id, voter)
        logger.info("vote %s recorded in election %s for voter %s", vote.id, vote.election_id, voter.user_id)
        return str(vote.id)

    @with_retry(attempts_setting="WRITE_RETRY_ATTEMPTS")
    @transaction.atomic
    def _cast(self, election_id, candidate_id, voter: Identity) -> Vote:
        try:
            election = Election.objects.get(pk=election_id)
        except (Election.DoesNotExist, DjangoValidationError, ValueError) as exc:
            raise errors.PhaseError(f"election {election_id} does not exist") from exc
        if self.elections.current_phase(election) != ACTIVE:
            raise errors.PhaseError("voting is only open while the election is active")

        if not self.eligibility.can_vote(election, voter):
            raise errors.IneligibleError("not eligible to vote in this election")

        # Lock order: election, candidate, voter record.
        capped = self._capped(election)
        if capped:
            # Different voters share the vote count, so serialise on the election.
            election = Election.objects.select_for_update().get(pk=election.pk)

        try:
            # Locked so a concurrent rejection waits for this cast, or this cast sees it.
            candidate = Candidate.objects.select_for_update().get(
                pk=candidate_id, election=election, status=Candidate.STATUS_APPROVED)
        except (Candidate.DoesNotExist, DjangoValidationError, ValueError) as exc:
            raise errors.InvalidCandidateError() from exc

        record, _ = VoterRecord.objects.get_or_create(election=election, user_id=voter.user_id)
        record = VoterRecord.objects.select_for_update().get(pk=record.pk)
        if self._already_voted(election, record):
            raise errors.AlreadyVotedError()

        if capped and Vote.objects.filter(election=election).count() >= election.max_voters:
            raise errors.IneligibleError("the election has reached its voter capacity")

        now = self.clock()
        try:
            with transaction.atomic():
                vote = Vote.objects.create(election=election, candidate=candidate,
                                           voter_id=voter.user_id, cast_at=now)
        except IntegrityError as exc:
            raise errors.AlreadyVotedError() from exc

        record.has_voted = True
        record.voted_at = now
        record.save(update_fields=["has_voted", "voted_at"])
        vote_recorded.send(sender=Vote, vote=vote)
        audit(AuditLog.ACTOR_TYPE_USER, voter.user_id, "vote_cast", "Election", election.id, {"vote": str(vote.id)})
        transaction.on_commit(lambda: vote_committed.send(sender=Vote, vote=vote))
        return vote

    def _capped(self, election) -> bool:
        """Open elections with ``max_voters`` cap the number of distinct votes."""
        return bool(election.max_voters) and not AllowlistEntry.objects.filter(
            election=election, role=AllowlistEntry.ROLE_VOTER).exists()

    def _already_voted(self, election, record) -> bool:
        return record.has_voted or Vote.objects.filter(election=election, voter_id=record.user_id).exists()

    @with_retry
    def has_voted(self, election_id, voter_id) -> bool:
        record = VoterRecord.objects.filter(election_id=election_id, user_id=voter_id).first()
        if record is not None:
            return record.has_voted
        return Vote.objects.filter(election_id=election_id, voter_id=voter_id).exists()

    @with_retry
    def count_for_candidate(self, candidate_id) -> int:
        return Vote.objects.filter(candidate_id=candidate_id).count()

    @with_retry
    def tally(self, election_id) -> List[TallyRow]:
        election = self.elections.get(election_id)
        total = Vote.objects.filter(election=election).count()
        candidates = (Candidate.objects.filter(election=election, status=Candidate.STATUS_APPROVED)
                      .annotate(num_votes=Count("votes")))
        rows = [
            TallyRow(
                candidate_id=str(c.id),
                name=c.name,
                position=c.position,
                votes=c.num_votes,
                percentage=percentage(c.num_votes, total),
            )
            for c in candidates
        ]
        rows.sort(key=lambda row: (-row.votes, row.candidate_id))
        return rows

    @with_retry
    def turnout(self, election_id, roster: Optional[list] = None) -> Turnout:
        """Eligible voters against votes cast.

        The voter allowlist defines the electorate. For an open election the
        caller may pass a ``roster``; without one the known voter records
        stand in for it.
        """
        election = self.elections.get(election_id)
        total_votes = Vote.objects.filter(election=election).count()
        allowlisted = AllowlistEntry.objects.filter(election=election, role=AllowlistEntry.ROLE_VOTER).count()
        if allowlisted:
            total_voters = allowlisted
        elif roster is not None:
            total_voters = len(set(roster))
        else:
            total_voters = max(VoterRecord.objects.filter(election=election).count(), total_votes)
        return Turnout(total_voters=total_voters, total_votes=total_votes,
                       pending=max(0, total_voters - total_votes))

    def stats(self, election_id, roster=None) -> ElectionStats:
        return ElectionStats(turnout=self.turnout(election_id, roster=roster), results=self.tally(election_id))
