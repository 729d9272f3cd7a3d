import datetime

from core.identity import Identity, ROLE_ADMIN, ROLE_CANDIDATE, ROLE_VOTER
from core.models import AllowlistEntry, Candidate, Election
from core.phase import resolve_phase

NOW = datetime.datetime(2025, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)
HOUR = datetime.timedelta(hours=1)

ADMIN = Identity("admin-1", "admin@uni.edu", ROLE_ADMIN)
OTHER_ADMIN = Identity("admin-2", "other@uni.edu", ROLE_ADMIN)


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


def voter(user_id, email=None):
    return Identity(user_id, email or f"{user_id}@uni.edu", ROLE_VOTER)


def applicant(user_id, email=None):
    return Identity(user_id, email or f"{user_id}@uni.edu", ROLE_CANDIDATE)


def election_fields(**overrides):
    fields = {
        "title": "Student council",
        "description": "Annual council election",
        "start_time": NOW + HOUR,
        "end_time": NOW + 3 * HOUR,
        "positions": ["President", "Treasurer"],
    }
    fields.update(overrides)
    return fields


def make_election(start=NOW - HOUR, end=NOW + HOUR, voters=(), owner=ADMIN.user_id, **extra):
    """Insert an election directly, bypassing the registry."""
    election = Election.objects.create(
        title=extra.pop("title", "Board"),
        description="Board election",
        start_time=start,
        end_time=end,
        positions=extra.pop("positions", ["Chair"]),
        owner_id=owner,
        phase=resolve_phase(NOW, start, end),
        **extra,
    )
    for user_id in voters:
        AllowlistEntry.objects.create(election=election, user_id=user_id, role=AllowlistEntry.ROLE_VOTER)
    return election


def make_candidate(election, user_id="cand-1", status=Candidate.STATUS_APPROVED, **extra):
    return Candidate.objects.create(
        election=election,
        user_id=user_id,
        name=extra.pop("name", user_id.title()),
        position=extra.pop("position", election.positions[0]),
        status=status,
        **extra,
    )
