"""Role-scoped entry point used by the API layer.

Every method takes the caller's ``Identity`` first and checks its role
before delegating to the registries and the ledger.
"""
from django.utils import timezone

from . import errors
from .candidates import CandidateRegistry
from .eligibility import EligibilityStore
from .elections import ElectionRegistry
from .identity import ROLE_ADMIN, ROLE_CANDIDATE, ROLE_VOTER, Identity
from .ledger import VoteLedger
from .models import Candidate
from .phase import ACTIVE, COMPLETED


def require_role(identity: Identity, *roles):
    if identity.role not in roles:
        raise errors.AuthorizationError(f"{identity.role} may not perform this action")


class ElectionService:

    def __init__(self, clock=None):
        self.clock = clock or timezone.now
        self.elections = ElectionRegistry(clock=self.clock)
        self.eligibility = EligibilityStore()
        self.ledger = VoteLedger(elections=self.elections, eligibility=self.eligibility, clock=self.clock)
        self.candidates = CandidateRegistry(elections=self.elections, eligibility=self.eligibility,
                                            ledger=self.ledger, clock=self.clock)

    # Shared reads

    def get_election(self, identity: Identity, election_id):
        return self.elections.get(election_id)

    def list_elections(self, identity: Identity, phase=None):
        if identity.is_admin:
            return self.elections.list(phase)
        if identity.role == ROLE_VOTER and phase in (None, ACTIVE):
            return self.eligible_active_elections(identity)
        return self.elections.list(phase)

    def list_candidates(self, identity: Identity, election_id, status=None):
        if not identity.is_admin:
            status = Candidate.STATUS_APPROVED
        return self.candidates.list_for_election(election_id, status)

    # Admin

    def create_election(self, identity: Identity, fields) -> str:
        require_role(identity, ROLE_ADMIN)
        return self.elections.create(identity.user_id, fields)

    def update_election(self, identity: Identity, election_id, fields):
        require_role(identity, ROLE_ADMIN)
        return self.elections.update(election_id, identity.user_id, fields)

    def cancel_election(self, identity: Identity, election_id):
        require_role(identity, ROLE_ADMIN)
        return self.elections.cancel(election_id, identity.user_id)

    def delete_election(self, identity: Identity, election_id):
        require_role(identity, ROLE_ADMIN)
        self.elections.delete(election_id, identity.user_id)

    def decide_candidate(self, identity: Identity, candidate_id, outcome, reason=None):
        require_role(identity, ROLE_ADMIN)
        return self.candidates.decide(candidate_id, identity.user_id, outcome, reason)

    def pending_candidates(self, identity: Identity, election_id=None):
        require_role(identity, ROLE_ADMIN)
        return self.candidates.pending(election_id)

    def add_to_allowlist(self, identity: Identity, election_id, user_id, role) -> bool:
        require_role(identity, ROLE_ADMIN)
        election = self.elections.get(election_id)
        return self.eligibility.add_to_allowlist(election, user_id, role, added_by=identity.user_id)

    def remove_from_allowlist(self, identity: Identity, election_id, user_id, role) -> bool:
        require_role(identity, ROLE_ADMIN)
        election = self.elections.get(election_id)
        return self.eligibility.remove_from_allowlist(election, user_id, role, removed_by=identity.user_id)

    def tally(self, identity: Identity, election_id):
        require_role(identity, ROLE_ADMIN)
        return self.ledger.tally(election_id)

    def turnout(self, identity: Identity, election_id, roster=None):
        require_role(identity, ROLE_ADMIN)
        return self.ledger.turnout(election_id, roster=roster)

    def stats(self, identity: Identity, election_id, roster=None):
        require_role(identity, ROLE_ADMIN)
        return self.ledger.stats(election_id, roster=roster)

    def reconcile(self, identity: Identity) -> int:
        require_role(identity, ROLE_ADMIN)
        return self.elections.reconcile_all()

    # Candidate

    def apply(self, identity: Identity, election_id, fields) -> str:
        require_role(identity, ROLE_CANDIDATE)
        return self.candidates.apply(election_id, identity, fields)

    def my_applications(self, identity: Identity):
        require_role(identity, ROLE_CANDIDATE)
        return self.candidates.list_for_user(identity.user_id)

    # Voter

    def eligible_active_elections(self, identity: Identity):
        require_role(identity, ROLE_VOTER)
        return [e for e in self.elections.list(ACTIVE) if self.eligibility.can_vote(e, identity)]

    def cast_vote(self, identity: Identity, election_id, candidate_id) -> str:
        require_role(identity, ROLE_VOTER)
        return self.ledger.cast_vote(election_id, candidate_id, identity)

    def has_voted(self, identity: Identity, election_id) -> bool:
        require_role(identity, ROLE_VOTER)
        return self.ledger.has_voted(election_id, identity.user_id)

    def results(self, identity: Identity, election_id):
        """Final tally; before completion only admins may look."""
        election = self.elections.get(election_id)
        if not identity.is_admin and self.elections.current_phase(election) != COMPLETED:
            raise errors.PhaseError("results are published once the election is completed")
        return self.ledger.tally(election_id)
