from django.db import models
from django.db.models import Q, F
import uuid
from django.utils import timezone

from .phase import PHASE_CHOICES, UPCOMING


class Election(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200)
    description = models.TextField()
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    positions = models.JSONField(default=list)
    max_candidates = models.PositiveIntegerField(null=True, blank=True)
    max_voters = models.PositiveIntegerField(null=True, blank=True)
    allowed_email_keyword = models.CharField(max_length=200, blank=True, default="")
    owner_id = models.CharField(max_length=200)
    cancelled = models.BooleanField(default=False)
    # Cached; written only by ElectionRegistry reconciliation.
    phase = models.CharField(max_length=20, choices=PHASE_CHOICES, default=UPCOMING)
    phase_reconciled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=['start_time', 'end_time'], name='election_window_idx'),
            models.Index(fields=['owner_id'], name='election_owner_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(end_time__gt=F('start_time')), name='election_end_after_start'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return self.title


class AllowlistEntry(models.Model):
    ROLE_VOTER = "voter"
    ROLE_CANDIDATE = "candidate"
    ROLE_CHOICES = [
        (ROLE_VOTER, "Voter"),
        (ROLE_CANDIDATE, "Candidate"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='allowlist')
    user_id = models.CharField(max_length=200)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    added_by = models.CharField(max_length=200, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=['election', 'role'], name='allowlist_role_idx'),
        ]
        constraints = [
            models.UniqueConstraint(fields=['election', 'user_id', 'role'], name='allowlist_unique_member'),
        ]


class Candidate(models.Model):
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='candidates')
    user_id = models.CharField(max_length=200)
    position = models.CharField(max_length=200)
    name = models.CharField(max_length=200)
    age = models.PositiveSmallIntegerField(null=True, blank=True)
    phone = models.CharField(max_length=30, blank=True, default="")
    bio = models.TextField(blank=True, default="")
    manifesto = models.TextField(blank=True, default="")
    image_url = models.CharField(max_length=500, blank=True, default="")
    document_urls = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    rejection_reason = models.TextField(blank=True, null=True)
    # Cached; incremented only by the vote_recorded receiver.
    vote_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    decision_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.CharField(max_length=200, null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['election', 'status'], name='candidate_status_idx'),
            models.Index(fields=['user_id'], name='candidate_user_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['election', 'user_id'],
                condition=~Q(status='rejected'),
                name='candidate_one_active_application',
            ),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.position})"


class VoterRecord(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='voter_records')
    user_id = models.CharField(max_length=200)
    has_voted = models.BooleanField(default=False)
    voted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['election', 'user_id'], name='voter_record_unique'),
        ]


class Vote(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name='votes')
    candidate = models.ForeignKey(Candidate, on_delete=models.PROTECT, related_name='votes')
    voter_id = models.CharField(max_length=200)
    cast_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=['election', 'candidate'], name='vote_candidate_idx'),
            models.Index(fields=['cast_at'], name='vote_cast_at_idx'),
        ]
        constraints = [
            models.UniqueConstraint(fields=['election', 'voter_id'], name='vote_once_per_election'),
        ]


class AuditLog(models.Model):
    ACTOR_TYPE_USER = "USER"
    ACTOR_TYPE_SYSTEM = "SYSTEM"
    ACTOR_TYPE_CHOICES = [
        (ACTOR_TYPE_USER, "User"),
        (ACTOR_TYPE_SYSTEM, "System"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor_type = models.CharField(max_length=20, choices=ACTOR_TYPE_CHOICES)
    actor_id = models.CharField(max_length=200, null=True, blank=True)
    action = models.CharField(max_length=200)
    entity = models.CharField(max_length=200)
    entity_id = models.CharField(max_length=200, null=True, blank=True)
    payload = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'entity', 'created_at'], name='audit_action_idx'),
        ]
