"""Per-election voter and candidate allowlists."""
import logging

from django.db import IntegrityError, transaction

from . import errors
from .audit import audit
from .identity import Identity
from .models import AllowlistEntry, AuditLog, Candidate, Election, VoterRecord

logger = logging.getLogger(__name__)

ROLES = (AllowlistEntry.ROLE_VOTER, AllowlistEntry.ROLE_CANDIDATE)


def email_matches(election: Election, email) -> bool:
    keyword = (election.allowed_email_keyword or "").strip().lower()
    if not keyword:
        return True
    return keyword in (email or "").lower()


class EligibilityStore:

    def allowlist(self, election: Election, role) -> set:
        return set(AllowlistEntry.objects.filter(election=election, role=role)
                   .values_list("user_id", flat=True))

    def _allowed(self, election, user_id, role) -> bool:
        entries = AllowlistEntry.objects.filter(election=election, role=role)
        # An empty allowlist leaves the election open to everyone.
        return not entries.exists() or entries.filter(user_id=user_id).exists()

    def can_vote(self, election: Election, user: Identity) -> bool:
        return (self._allowed(election, user.user_id, AllowlistEntry.ROLE_VOTER)
                and email_matches(election, user.email))

    def can_apply_as_candidate(self, election: Election, user: Identity) -> bool:
        if not (self._allowed(election, user.user_id, AllowlistEntry.ROLE_CANDIDATE)
                and email_matches(election, user.email)):
            return False
        if election.max_candidates:
            standing = (Candidate.objects.filter(election=election)
                        .exclude(status=Candidate.STATUS_REJECTED).count())
            if standing >= election.max_candidates:
                return False
        return True

    def add_to_allowlist(self, election: Election, user_id, role, added_by="") -> bool:
        """Add ``user_id`` to the election's ``role`` allowlist.

        Returns False when the user was already present. The election row is
        locked for the duration so concurrent admins serialise on it.
        """
        if role not in ROLES:
            raise errors.ValidationError(f"unknown allowlist role {role!r}", fields={"role": "unknown"})
        user_id = str(user_id).strip()
        if not user_id:
            raise errors.ValidationError("user id is required", fields={"user_id": "required"})
        with transaction.atomic():
            locked = Election.objects.select_for_update().get(pk=election.pk)
            entries = AllowlistEntry.objects.filter(election=locked, role=role)
            if entries.filter(user_id=user_id).exists():
                return False
            if role == AllowlistEntry.ROLE_VOTER and locked.max_voters and entries.count() >= locked.max_voters:
                raise errors.ValidationError("voter allowlist is full", fields={"user_id": "max_voters reached"})
            try:
                with transaction.atomic():
                    AllowlistEntry.objects.create(election=locked, user_id=user_id, role=role, added_by=added_by)
            except IntegrityError:
                return False
            if role == AllowlistEntry.ROLE_VOTER:
                VoterRecord.objects.get_or_create(election=locked, user_id=user_id)
            audit(AuditLog.ACTOR_TYPE_USER, added_by, "allowlist_added", "Election", locked.id,
                  {"user_id": user_id, "role": role})
        logger.info("added %s to %s allowlist of election %s", user_id, role, election.pk)
        return True

    def remove_from_allowlist(self, election: Election, user_id, role, removed_by="") -> bool:
        if role not in ROLES:
            raise errors.ValidationError(f"unknown allowlist role {role!r}", fields={"role": "unknown"})
        with transaction.atomic():
            locked = Election.objects.select_for_update().get(pk=election.pk)
            deleted, _ = AllowlistEntry.objects.filter(election=locked, user_id=user_id, role=role).delete()
            if not deleted:
                return False
            if role == AllowlistEntry.ROLE_VOTER:
                # Voters who already voted keep their record.
                VoterRecord.objects.filter(election=locked, user_id=user_id, has_voted=False).delete()
            audit(AuditLog.ACTOR_TYPE_USER, removed_by, "allowlist_removed", "Election", locked.id,
                  {"user_id": user_id, "role": role})
        logger.info("removed %s from %s allowlist of election %s", user_id, role, election.pk)
        return True
