from django.test import TestCase

from core import errors
from core.eligibility import EligibilityStore
from core.models import AllowlistEntry, Candidate, VoterRecord

from .helpers import ADMIN, NOW, HOUR, applicant, make_candidate, make_election, voter


class CanVoteTests(TestCase):
    def setUp(self):
        self.store = EligibilityStore()

    def test_empty_allowlist_is_open_to_everyone(self):
        election = make_election()
        self.assertTrue(self.store.can_vote(election, voter("anyone")))

    def test_non_empty_allowlist_restricts(self):
        election = make_election(voters=["a", "b"])
        self.assertTrue(self.store.can_vote(election, voter("a")))
        self.assertFalse(self.store.can_vote(election, voter("stranger")))

    def test_email_keyword_is_case_insensitive_substring(self):
        election = make_election(allowed_email_keyword="Uni.EDU")
        self.assertTrue(self.store.can_vote(election, voter("a", "Alice@STUDENTS.uni.edu")))
        self.assertFalse(self.store.can_vote(election, voter("b", "bob@gmail.com")))
        self.assertFalse(self.store.can_vote(election, voter("c", "")))

    def test_allowlist_and_keyword_must_both_hold(self):
        election = make_election(voters=["a"], allowed_email_keyword="uni.edu")
        self.assertFalse(self.store.can_vote(election, voter("a", "a@gmail.com")))
        self.assertFalse(self.store.can_vote(election, voter("z", "z@uni.edu")))


class CanApplyTests(TestCase):
    def setUp(self):
        self.store = EligibilityStore()
        self.election = make_election(start=NOW + HOUR, end=NOW + 2 * HOUR, max_candidates=2)

    def test_candidate_allowlist(self):
        AllowlistEntry.objects.create(election=self.election, user_id="c1", role=AllowlistEntry.ROLE_CANDIDATE)
        self.assertTrue(self.store.can_apply_as_candidate(self.election, applicant("c1")))
        self.assertFalse(self.store.can_apply_as_candidate(self.election, applicant("c2")))

    def test_voter_allowlist_does_not_restrict_candidates(self):
        AllowlistEntry.objects.create(election=self.election, user_id="v1", role=AllowlistEntry.ROLE_VOTER)
        self.assertTrue(self.store.can_apply_as_candidate(self.election, applicant("c1")))

    def test_capacity_counts_pending_and_approved_but_not_rejected(self):
        make_candidate(self.election, "c1", status=Candidate.STATUS_PENDING)
        make_candidate(self.election, "c2", status=Candidate.STATUS_REJECTED)
        self.assertTrue(self.store.can_apply_as_candidate(self.election, applicant("c3")))
        make_candidate(self.election, "c4", status=Candidate.STATUS_APPROVED)
        self.assertFalse(self.store.can_apply_as_candidate(self.election, applicant("c3")))


class AllowlistMutationTests(TestCase):
    def setUp(self):
        self.store = EligibilityStore()
        self.election = make_election(max_voters=2)

    def test_add_is_idempotent(self):
        self.assertTrue(self.store.add_to_allowlist(self.election, "a", "voter", added_by=ADMIN.user_id))
        self.assertFalse(self.store.add_to_allowlist(self.election, "a", "voter", added_by=ADMIN.user_id))
        self.assertEqual(self.store.allowlist(self.election, "voter"), {"a"})
        self.assertEqual(VoterRecord.objects.filter(election=self.election, user_id="a").count(), 1)

    def test_same_user_may_hold_both_roles(self):
        self.store.add_to_allowlist(self.election, "a", "voter")
        self.store.add_to_allowlist(self.election, "a", "candidate")
        self.assertEqual(self.store.allowlist(self.election, "candidate"), {"a"})
        self.assertEqual(VoterRecord.objects.filter(election=self.election).count(), 1)

    def test_voter_allowlist_respects_max_voters(self):
        self.store.add_to_allowlist(self.election, "a", "voter")
        self.store.add_to_allowlist(self.election, "b", "voter")
        with self.assertRaises(errors.ValidationError):
            self.store.add_to_allowlist(self.election, "c", "voter")
        # Re-adding an existing member is still a no-op, not a capacity error.
        self.assertFalse(self.store.add_to_allowlist(self.election, "a", "voter"))

    def test_remove(self):
        self.store.add_to_allowlist(self.election, "a", "voter")
        self.assertTrue(self.store.remove_from_allowlist(self.election, "a", "voter"))
        self.assertFalse(self.store.remove_from_allowlist(self.election, "a", "voter"))
        self.assertEqual(self.store.allowlist(self.election, "voter"), set())
        self.assertFalse(VoterRecord.objects.filter(election=self.election, user_id="a").exists())

    def test_remove_keeps_record_of_voter_who_already_voted(self):
        self.store.add_to_allowlist(self.election, "a", "voter")
        VoterRecord.objects.filter(election=self.election, user_id="a").update(has_voted=True)
        self.store.remove_from_allowlist(self.election, "a", "voter")
        self.assertTrue(VoterRecord.objects.get(election=self.election, user_id="a").has_voted)

    def test_invalid_role_and_user(self):
        with self.assertRaises(errors.ValidationError):
            self.store.add_to_allowlist(self.election, "a", "observer")
        with self.assertRaises(errors.ValidationError):
            self.store.add_to_allowlist(self.election, "  ", "voter")
        with self.assertRaises(errors.ValidationError):
            self.store.remove_from_allowlist(self.election, "a", "observer")
