"""Election entity management and phase reconciliation.

Phase is stored on the election as a cache that only ``reconcile_all`` (and
the initial create / explicit cancel) writes. Every decision that depends on
the phase resolves it afresh from the injected clock via ``current_phase``,
so a stale cache can never let a vote or application through.
"""
import logging
from datetime import datetime

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import ProtectedError
from django.utils import timezone

from . import errors
from .audit import audit
from .models import AllowlistEntry, AuditLog, Candidate, Election, Vote
from .phase import CANCELLED, COMPLETED, PHASES, UPCOMING, phase_filter, resolve_phase
from .retry import with_retry

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title", "description", "start_time", "end_time", "positions",
    "max_candidates", "max_voters", "allowed_email_keyword",
)


def _clean_limit(fields, name, problems):
    value = fields.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        problems[name] = "must be a positive integer"
        return None
    return value


def clean_election_fields(fields):
    """Validate and normalise election attributes, raising ValidationError."""
    problems = {}
    title = (fields.get("title") or "").strip()
    description = (fields.get("description") or "").strip()
    if not title:
        problems["title"] = "must not be empty"
    if not description:
        problems["description"] = "must not be empty"

    start, end = fields.get("start_time"), fields.get("end_time")
    if not isinstance(start, datetime):
        problems["start_time"] = "must be a datetime"
    if not isinstance(end, datetime):
        problems["end_time"] = "must be a datetime"
    if isinstance(start, datetime) and isinstance(end, datetime) and end <= start:
        problems["end_time"] = "must be after start_time"

    positions = []
    for raw in fields.get("positions") or []:
        name = str(raw).strip()
        if not name:
            problems["positions"] = "position names must not be empty"
        elif name in positions:
            problems["positions"] = f"duplicate position {name!r}"
        else:
            positions.append(name)
    if not positions and "positions" not in problems:
        problems["positions"] = "at least one position is required"

    cleaned = {
        "title": title,
        "description": description,
        "start_time": start,
        "end_time": end,
        "positions": positions,
        "max_candidates": _clean_limit(fields, "max_candidates", problems),
        "max_voters": _clean_limit(fields, "max_voters", problems),
        "allowed_email_keyword": (fields.get("allowed_email_keyword") or "").strip(),
    }
    if problems:
        raise errors.ValidationError("invalid election", fields=problems)
    return cleaned


class ElectionRegistry:

    def __init__(self, clock=None):
        self.clock = clock or timezone.now

    def current_phase(self, election: Election) -> str:
        return resolve_phase(self.clock(), election.start_time, election.end_time, election.cancelled)

    def create(self, admin_id, fields) -> str:
        cleaned = clean_election_fields(fields)
        now = self.clock()
        with transaction.atomic():
            election = Election.objects.create(
                owner_id=admin_id,
                phase=resolve_phase(now, cleaned["start_time"], cleaned["end_time"]),
                phase_reconciled_at=now,
                created_at=now,
                updated_at=now,
                **cleaned,
            )
            for role, key in ((AllowlistEntry.ROLE_VOTER, "voter_allowlist"),
                              (AllowlistEntry.ROLE_CANDIDATE, "candidate_allowlist")):
                user_ids = {str(u) for u in fields.get(key) or [] if str(u).strip()}
                if role == AllowlistEntry.ROLE_VOTER and cleaned["max_voters"] and len(user_ids) > cleaned["max_voters"]:
                    raise errors.ValidationError("voter allowlist exceeds max_voters",
                                                 fields={key: "too many voters"})
                AllowlistEntry.objects.bulk_create([
                    AllowlistEntry(election=election, user_id=user_id, role=role, added_by=admin_id)
                    for user_id in sorted(user_ids)
                ])
            audit(AuditLog.ACTOR_TYPE_USER, admin_id, "election_created", "Election", election.id,
                  {"title": election.title, "phase": election.phase})
        logger.info("election %s created by %s (phase %s)", election.id, admin_id, election.phase)
        return str(election.id)

    @with_retry
    def get(self, election_id) -> Election:
        try:
            return Election.objects.get(pk=election_id)
        except (Election.DoesNotExist, DjangoValidationError, ValueError) as exc:
            raise errors.NotFoundError(f"election {election_id} not found") from exc

    @with_retry
    def list(self, phase=None):
        queryset = Election.objects.all()
        if phase is not None:
            if phase not in PHASES:
                raise errors.ValidationError(f"unknown phase {phase!r}", fields={"phase": "unknown"})
            queryset = queryset.filter(phase_filter(phase, self.clock()))
        return list(queryset)

    def _locked_owned(self, election_id, requesting_admin) -> Election:
        # Runs inside the caller's transaction, so no retry here.
        try:
            election = Election.objects.select_for_update().get(pk=election_id)
        except (Election.DoesNotExist, DjangoValidationError, ValueError) as exc:
            raise errors.NotFoundError(f"election {election_id} not found") from exc
        if election.owner_id != requesting_admin:
            raise errors.AuthorizationError("only the election owner may change it")
        return election

    def update(self, election_id, requesting_admin, fields) -> Election:
        with transaction.atomic():
            election = self._locked_owned(election_id, requesting_admin)
            if self.current_phase(election) != UPCOMING:
                raise errors.PhaseError("only upcoming elections can be edited")
            merged = {name: getattr(election, name) for name in EDITABLE_FIELDS}
            merged.update({k: v for k, v in fields.items() if k in EDITABLE_FIELDS})
            cleaned = clean_election_fields(merged)

            stranded = (Candidate.objects.filter(election=election)
                        .exclude(status=Candidate.STATUS_REJECTED)
                        .exclude(position__in=cleaned["positions"]))
            if stranded.exists():
                raise errors.ValidationError("positions with applications cannot be removed",
                                             fields={"positions": "position in use"})
            voters = AllowlistEntry.objects.filter(election=election, role=AllowlistEntry.ROLE_VOTER).count()
            if cleaned["max_voters"] and voters > cleaned["max_voters"]:
                raise errors.ValidationError("max_voters is below the voter allowlist size",
                                             fields={"max_voters": "too small"})

            for name, value in cleaned.items():
                setattr(election, name, value)
            election.updated_at = self.clock()
            election.save()
            audit(AuditLog.ACTOR_TYPE_USER, requesting_admin, "election_updated", "Election", election.id,
                  {"fields": sorted(k for k in fields if k in EDITABLE_FIELDS)})
        self._reconcile_one(election)
        logger.info("election %s updated by %s", election.id, requesting_admin)
        return election

    def cancel(self, election_id, requesting_admin) -> Election:
        with transaction.atomic():
            election = self._locked_owned(election_id, requesting_admin)
            if election.cancelled:
                return election
            if self.current_phase(election) == COMPLETED:
                raise errors.PhaseError("a completed election cannot be cancelled")
            election.cancelled = True
            election.updated_at = self.clock()
            election.save(update_fields=["cancelled", "updated_at"])
            audit(AuditLog.ACTOR_TYPE_USER, requesting_admin, "election_cancelled", "Election", election.id)
        self._reconcile_one(election)
        logger.info("election %s cancelled by %s", election.id, requesting_admin)
        return election

    def delete(self, election_id, requesting_admin) -> None:
        """Delete an election and its applications, allowlists and voter records.

        Vote history is never discarded: an election with recorded votes is
        refused with ElectionHasVotesError and should be cancelled instead.
        """
        with transaction.atomic():
            election = self._locked_owned(election_id, requesting_admin)
            if Vote.objects.filter(election=election).exists():
                raise errors.ElectionHasVotesError()
            try:
                election.delete()
            except ProtectedError as exc:
                raise errors.ElectionHasVotesError() from exc
            audit(AuditLog.ACTOR_TYPE_USER, requesting_admin, "election_deleted", "Election", election_id)
        logger.info("election %s deleted by %s", election_id, requesting_admin)

    def _reconcile_one(self, election: Election, now=None) -> bool:
        now = now or self.clock()
        fresh = resolve_phase(now, election.start_time, election.end_time, election.cancelled)
        if fresh == election.phase:
            return False
        # Compare-and-set against the cached value so concurrent sweeps agree.
        changed = (Election.objects.filter(pk=election.pk, phase=election.phase)
                   .update(phase=fresh, phase_reconciled_at=now))
        if changed:
            logger.info("election %s phase %s -> %s", election.pk, election.phase, fresh)
            election.phase = fresh
            election.phase_reconciled_at = now
        return bool(changed)

    def reconcile_all(self) -> int:
        now = self.clock()
        changed = 0
        for election in Election.objects.exclude(phase=CANCELLED, cancelled=True).iterator():
            if self._reconcile_one(election, now=now):
                changed += 1
        if changed:
            audit(AuditLog.ACTOR_TYPE_SYSTEM, None, "phases_reconciled", "Election", None, {"changed": changed})
        logger.info("reconciled election phases: %d changed", changed)
        return changed
