"""Candidate application lifecycle: pending -> approved / rejected."""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.dispatch import receiver
from django.utils import timezone

from . import errors
from .audit import audit
from .eligibility import EligibilityStore
from .elections import ElectionRegistry
from .identity import Identity
from .ledger import VoteLedger
from .models import AuditLog, Candidate, Election, Vote
from .phase import UPCOMING
from .retry import with_retry
from .signals import vote_recorded

logger = logging.getLogger(__name__)

OUTCOMES = (Candidate.STATUS_APPROVED, Candidate.STATUS_REJECTED)
STATUSES = [value for value, _ in Candidate.STATUS_CHOICES]


@receiver(vote_recorded, dispatch_uid="core.candidates.increment_cached_vote_count")
def increment_cached_vote_count(sender, vote, **kwargs):
    Candidate.objects.filter(pk=vote.candidate_id).update(vote_count=F("vote_count") + 1)


def clean_candidate_fields(election: Election, fields):
    problems = {}
    name = (fields.get("name") or "").strip()
    if not name:
        problems["name"] = "must not be empty"
    position = (fields.get("position") or "").strip()
    if position not in election.positions:
        problems["position"] = "must be one of the election positions"
    age = fields.get("age")
    if age is not None and (isinstance(age, bool) or not isinstance(age, int) or not 0 < age < 150):
        problems["age"] = "must be a plausible age"
    documents = fields.get("document_urls") or []
    if not isinstance(documents, (list, tuple)) or not all(isinstance(d, str) for d in documents):
        problems["document_urls"] = "must be a list of references"
    if problems:
        raise errors.ValidationError("invalid application", fields=problems)
    return {
        "name": name,
        "position": position,
        "age": age,
        "phone": (fields.get("phone") or "").strip(),
        "bio": fields.get("bio") or "",
        "manifesto": fields.get("manifesto") or "",
        "image_url": fields.get("image_url") or "",
        "document_urls": list(documents),
    }


class CandidateRegistry:

    def __init__(self, elections=None, eligibility=None, ledger=None, clock=None):
        self.clock = clock or timezone.now
        self.elections = elections or ElectionRegistry(clock=self.clock)
        self.eligibility = eligibility or EligibilityStore()
        self.ledger = ledger or VoteLedger(elections=self.elections, eligibility=self.eligibility)

    def apply(self, election_id, user: Identity, fields) -> str:
        election = self.elections.get(election_id)
        with transaction.atomic():
            # Serialises applications per election for the capacity check.
            election = Election.objects.select_for_update().get(pk=election.pk)
            if not self.eligibility.can_apply_as_candidate(election, user):
                raise errors.IneligibleError("not eligible to stand in this election")
            if self.elections.current_phase(election) != UPCOMING:
                raise errors.PhaseError("applications are only accepted before the election starts")
            cleaned = clean_candidate_fields(election, fields)
            active = (Candidate.objects.filter(election=election, user_id=user.user_id)
                      .exclude(status=Candidate.STATUS_REJECTED))
            if active.exists():
                raise errors.DuplicateError()
            try:
                with transaction.atomic():
                    candidate = Candidate.objects.create(
                        election=election, user_id=user.user_id, created_at=self.clock(), **cleaned)
            except IntegrityError as exc:
                raise errors.DuplicateError() from exc
            audit(AuditLog.ACTOR_TYPE_USER, user.user_id, "candidate_submitted", "Candidate", candidate.id,
                  {"status": candidate.status, "election": str(election.id)})
        logger.info("candidate %s applied to election %s as %s", user.user_id, election.id, cleaned["position"])
        return str(candidate.id)

    @with_retry
    def get(self, candidate_id) -> Candidate:
        try:
            return Candidate.objects.get(pk=candidate_id)
        except (Candidate.DoesNotExist, DjangoValidationError, ValueError) as exc:
            raise errors.NotFoundError(f"candidate {candidate_id} not found") from exc

    def decide(self, candidate_id, admin_id, outcome, reason=None) -> Candidate:
        if outcome not in OUTCOMES:
            raise errors.ValidationError(f"unknown outcome {outcome!r}", fields={"outcome": "unknown"})
        reason = (reason or "").strip()
        if outcome == Candidate.STATUS_REJECTED and not reason:
            raise errors.ValidationError("a rejection needs a reason", fields={"reason": "required"})
        candidate = self.get(candidate_id)
        with transaction.atomic():
            candidate = Candidate.objects.select_for_update().get(pk=candidate.pk)
            if candidate.status == outcome:
                return candidate
            if (candidate.status == Candidate.STATUS_APPROVED
                    and Vote.objects.filter(candidate=candidate).exists()):
                raise errors.PhaseError("candidate already holds votes")
            candidate.status = outcome
            candidate.rejection_reason = reason if outcome == Candidate.STATUS_REJECTED else None
            candidate.decision_at = self.clock()
            candidate.decided_by = admin_id
            try:
                with transaction.atomic():
                    candidate.save(update_fields=["status", "rejection_reason", "decision_at", "decided_by"])
            except IntegrityError as exc:
                raise errors.DuplicateError("the applicant has another active application") from exc
            action = "candidate_approve" if outcome == Candidate.STATUS_APPROVED else "candidate_reject"
            audit(AuditLog.ACTOR_TYPE_USER, admin_id, action, "Candidate", candidate.id, {"reason": reason})
        logger.info("candidate %s %s by %s", candidate.id, outcome, admin_id)
        return candidate

    def _clean_status(self, status):
        if status is not None and status not in STATUSES:
            raise errors.ValidationError(f"unknown status {status!r}", fields={"status": "unknown"})
        return status

    @with_retry
    def list_for_election(self, election_id, status=None):
        election = self.elections.get(election_id)
        queryset = Candidate.objects.filter(election=election)
        if self._clean_status(status):
            queryset = queryset.filter(status=status)
        return list(queryset)

    @with_retry
    def pending(self, election_id=None):
        queryset = Candidate.objects.filter(status=Candidate.STATUS_PENDING)
        if election_id is not None:
            queryset = queryset.filter(election=self.elections.get(election_id))
        return list(queryset.order_by("-created_at"))

    @with_retry
    def list_for_user(self, user_id):
        return list(Candidate.objects.filter(user_id=user_id).select_related("election"))

    def get_vote_count(self, candidate_id) -> int:
        return self.ledger.count_for_candidate(self.get(candidate_id).pk)
