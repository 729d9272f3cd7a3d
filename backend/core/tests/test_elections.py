from unittest import mock

from django.test import TestCase

from core import errors
from core.elections import ElectionRegistry
from core.models import AllowlistEntry, AuditLog, Candidate, Election, Vote, VoterRecord
from core.phase import ACTIVE, CANCELLED, COMPLETED, UPCOMING

from .helpers import ADMIN, HOUR, NOW, OTHER_ADMIN, Clock, election_fields, make_candidate, make_election


class ElectionCreateTests(TestCase):
    def setUp(self):
        self.clock = Clock()
        self.registry = ElectionRegistry(clock=self.clock)

    def test_create_stores_fields_and_resolved_phase(self):
        election_id = self.registry.create(ADMIN.user_id, election_fields(max_voters=10))
        election = self.registry.get(election_id)
        self.assertEqual(election.title, "Student council")
        self.assertEqual(election.positions, ["President", "Treasurer"])
        self.assertEqual(election.owner_id, ADMIN.user_id)
        self.assertEqual(election.max_voters, 10)
        self.assertIsNone(election.max_candidates)
        self.assertEqual(election.phase, UPCOMING)
        self.assertTrue(AuditLog.objects.filter(action="election_created", entity_id=election_id).exists())

    def test_initial_phase_is_not_hardcoded(self):
        election_id = self.registry.create(ADMIN.user_id, election_fields(start_time=NOW - HOUR))
        self.assertEqual(self.registry.get(election_id).phase, ACTIVE)

    def test_create_rejects_invalid_fields(self):
        cases = [
            ({"title": "  "}, "title"),
            ({"description": ""}, "description"),
            ({"end_time": NOW + HOUR}, "end_time"),
            ({"end_time": NOW}, "end_time"),
            ({"positions": []}, "positions"),
            ({"positions": ["Chair", "Chair"]}, "positions"),
            ({"max_candidates": 0}, "max_candidates"),
        ]
        for overrides, field in cases:
            with self.subTest(field=field, overrides=overrides):
                with self.assertRaises(errors.ValidationError) as ctx:
                    self.registry.create(ADMIN.user_id, election_fields(**overrides))
                self.assertIn(field, ctx.exception.fields)
        self.assertEqual(Election.objects.count(), 0)

    def test_create_with_allowlists(self):
        election_id = self.registry.create(ADMIN.user_id, election_fields(
            voter_allowlist=["a", "b", "a"], candidate_allowlist=["c"]))
        entries = AllowlistEntry.objects.filter(election_id=election_id)
        self.assertEqual(
            sorted(entries.values_list("user_id", "role")),
            [("a", "voter"), ("b", "voter"), ("c", "candidate")],
        )

    def test_voter_allowlist_larger_than_capacity_is_rejected(self):
        with self.assertRaises(errors.ValidationError):
            self.registry.create(ADMIN.user_id, election_fields(max_voters=1, voter_allowlist=["a", "b"]))
        self.assertEqual(Election.objects.count(), 0)


class ElectionReadTests(TestCase):
    def setUp(self):
        self.clock = Clock()
        self.registry = ElectionRegistry(clock=self.clock)

    def test_get_unknown_raises_not_found(self):
        with self.assertRaises(errors.NotFoundError):
            self.registry.get("5b7b3f3c-52a6-4b4e-9a57-1f1d0e1e2a11")
        with self.assertRaises(errors.NotFoundError):
            self.registry.get("not-a-uuid")

    def test_list_filters_on_fresh_phase_not_cached_value(self):
        election_id = self.registry.create(ADMIN.user_id, election_fields())
        self.assertEqual([str(e.id) for e in self.registry.list(UPCOMING)], [election_id])

        self.clock.advance(2 * HOUR)
        # Cached phase is still upcoming until the next reconcile.
        self.assertEqual(Election.objects.get(pk=election_id).phase, UPCOMING)
        self.assertEqual([str(e.id) for e in self.registry.list(ACTIVE)], [election_id])
        self.assertEqual(self.registry.list(UPCOMING), [])

        self.clock.advance(2 * HOUR)
        self.assertEqual([str(e.id) for e in self.registry.list(COMPLETED)], [election_id])

    def test_list_without_filter_and_with_unknown_phase(self):
        make_election()
        make_election(start=NOW + HOUR, end=NOW + 2 * HOUR)
        self.assertEqual(len(self.registry.list()), 2)
        with self.assertRaises(errors.ValidationError):
            self.registry.list("archived")


class ElectionMutationTests(TestCase):
    def setUp(self):
        self.clock = Clock()
        self.registry = ElectionRegistry(clock=self.clock)
        self.election_id = self.registry.create(ADMIN.user_id, election_fields(voter_allowlist=["a"]))

    def test_update_by_owner(self):
        election = self.registry.update(self.election_id, ADMIN.user_id, {"title": "Renamed", "max_voters": 5})
        self.assertEqual(election.title, "Renamed")
        self.assertEqual(Election.objects.get(pk=self.election_id).max_voters, 5)

    def test_update_by_non_owner_is_forbidden(self):
        with self.assertRaises(errors.AuthorizationError):
            self.registry.update(self.election_id, OTHER_ADMIN.user_id, {"title": "Mine now"})

    def test_update_revalidates(self):
        with self.assertRaises(errors.ValidationError):
            self.registry.update(self.election_id, ADMIN.user_id, {"end_time": NOW})

    def test_update_after_start_is_a_phase_error(self):
        self.clock.advance(2 * HOUR)
        with self.assertRaises(errors.PhaseError):
            self.registry.update(self.election_id, ADMIN.user_id, {"title": "Too late"})

    def test_update_cannot_drop_position_with_applications(self):
        election = Election.objects.get(pk=self.election_id)
        make_candidate(election, position="Treasurer", status=Candidate.STATUS_PENDING)
        with self.assertRaises(errors.ValidationError):
            self.registry.update(self.election_id, ADMIN.user_id, {"positions": ["President"]})

    def test_owner_mutations_on_unknown_election_are_not_found(self):
        # Looked up under the row lock, not through the retrying reader.
        with mock.patch.object(ElectionRegistry, "get", side_effect=AssertionError("unlocked read")):
            for election_id in ("5b7b3f3c-52a6-4b4e-9a57-1f1d0e1e2a11", "not-a-uuid"):
                with self.subTest(election_id=election_id):
                    with self.assertRaises(errors.NotFoundError):
                        self.registry.update(election_id, ADMIN.user_id, {"title": "Renamed"})
                    with self.assertRaises(errors.NotFoundError):
                        self.registry.cancel(election_id, ADMIN.user_id)
                    with self.assertRaises(errors.NotFoundError):
                        self.registry.delete(election_id, ADMIN.user_id)
            self.registry.cancel(self.election_id, ADMIN.user_id)

    def test_cancel_is_persisted_and_idempotent(self):
        self.registry.cancel(self.election_id, ADMIN.user_id)
        self.registry.cancel(self.election_id, ADMIN.user_id)
        election = Election.objects.get(pk=self.election_id)
        self.assertTrue(election.cancelled)
        self.assertEqual(election.phase, CANCELLED)
        self.assertEqual(self.registry.current_phase(election), CANCELLED)
        self.assertEqual(AuditLog.objects.filter(action="election_cancelled").count(), 1)

    def test_cancel_completed_election_is_rejected(self):
        self.clock.advance(10 * HOUR)
        with self.assertRaises(errors.PhaseError):
            self.registry.cancel(self.election_id, ADMIN.user_id)

    def test_delete_by_non_owner_is_forbidden(self):
        with self.assertRaises(errors.AuthorizationError):
            self.registry.delete(self.election_id, OTHER_ADMIN.user_id)
        self.assertTrue(Election.objects.filter(pk=self.election_id).exists())

    def test_delete_cascades_applications_and_voter_records(self):
        election = Election.objects.get(pk=self.election_id)
        make_candidate(election, position="President", status=Candidate.STATUS_PENDING)
        VoterRecord.objects.create(election=election, user_id="a")

        self.registry.delete(self.election_id, ADMIN.user_id)

        self.assertFalse(Election.objects.filter(pk=self.election_id).exists())
        self.assertFalse(Candidate.objects.filter(election_id=self.election_id).exists())
        self.assertFalse(VoterRecord.objects.filter(election_id=self.election_id).exists())
        self.assertFalse(AllowlistEntry.objects.filter(election_id=self.election_id).exists())

    def test_delete_with_votes_is_rejected_and_history_kept(self):
        election = Election.objects.get(pk=self.election_id)
        candidate = make_candidate(election, position="President")
        Vote.objects.create(election=election, candidate=candidate, voter_id="a")

        with self.assertRaises(errors.ElectionHasVotesError):
            self.registry.delete(self.election_id, ADMIN.user_id)
        self.assertEqual(Vote.objects.filter(election=election).count(), 1)
        self.assertTrue(Election.objects.filter(pk=self.election_id).exists())


class ReconcileTests(TestCase):
    def setUp(self):
        self.clock = Clock()
        self.registry = ElectionRegistry(clock=self.clock)

    def test_reconcile_persists_changes_and_is_idempotent(self):
        soon = self.registry.create(ADMIN.user_id, election_fields())
        later = self.registry.create(ADMIN.user_id, election_fields(
            start_time=NOW + 10 * HOUR, end_time=NOW + 12 * HOUR))

        self.clock.advance(2 * HOUR)
        self.assertEqual(self.registry.reconcile_all(), 1)
        self.assertEqual(Election.objects.get(pk=soon).phase, ACTIVE)
        self.assertEqual(Election.objects.get(pk=later).phase, UPCOMING)
        self.assertEqual(self.registry.reconcile_all(), 0)

        self.clock.advance(20 * HOUR)
        self.assertEqual(self.registry.reconcile_all(), 2)
        self.assertEqual(
            set(Election.objects.values_list("phase", flat=True)), {COMPLETED})
        self.assertEqual(Election.objects.get(pk=soon).phase_reconciled_at, self.clock.now)
