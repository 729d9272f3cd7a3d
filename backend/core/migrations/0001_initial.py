import django.db.models.deletion
import django.utils.timezone
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Election',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField()),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField()),
                ('positions', models.JSONField(default=list)),
                ('max_candidates', models.PositiveIntegerField(blank=True, null=True)),
                ('max_voters', models.PositiveIntegerField(blank=True, null=True)),
                ('allowed_email_keyword', models.CharField(blank=True, default='', max_length=200)),
                ('owner_id', models.CharField(max_length=200)),
                ('cancelled', models.BooleanField(default=False)),
                ('phase', models.CharField(choices=[('upcoming', 'Upcoming'), ('active', 'Active'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='upcoming', max_length=20)),
                ('phase_reconciled_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['start_time', 'end_time'], name='election_window_idx'),
                    models.Index(fields=['owner_id'], name='election_owner_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('end_time__gt', models.F('start_time'))), name='election_end_after_start'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('actor_type', models.CharField(choices=[('USER', 'User'), ('SYSTEM', 'System')], max_length=20)),
                ('actor_id', models.CharField(blank=True, max_length=200, null=True)),
                ('action', models.CharField(max_length=200)),
                ('entity', models.CharField(max_length=200)),
                ('entity_id', models.CharField(blank=True, max_length=200, null=True)),
                ('payload', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['action', 'entity', 'created_at'], name='audit_action_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AllowlistEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('user_id', models.CharField(max_length=200)),
                ('role', models.CharField(choices=[('voter', 'Voter'), ('candidate', 'Candidate')], max_length=20)),
                ('added_by', models.CharField(blank=True, default='', max_length=200)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='allowlist', to='core.election')),
            ],
            options={
                'indexes': [
                    models.Index(fields=['election', 'role'], name='allowlist_role_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('election', 'user_id', 'role'), name='allowlist_unique_member'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Candidate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('user_id', models.CharField(max_length=200)),
                ('position', models.CharField(max_length=200)),
                ('name', models.CharField(max_length=200)),
                ('age', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('phone', models.CharField(blank=True, default='', max_length=30)),
                ('bio', models.TextField(blank=True, default='')),
                ('manifesto', models.TextField(blank=True, default='')),
                ('image_url', models.CharField(blank=True, default='', max_length=500)),
                ('document_urls', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='pending', max_length=20)),
                ('rejection_reason', models.TextField(blank=True, null=True)),
                ('vote_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('decision_at', models.DateTimeField(blank=True, null=True)),
                ('decided_by', models.CharField(blank=True, max_length=200, null=True)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='candidates', to='core.election')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['election', 'status'], name='candidate_status_idx'),
                    models.Index(fields=['user_id'], name='candidate_user_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'rejected'), _negated=True), fields=('election', 'user_id'), name='candidate_one_active_application'),
                ],
            },
        ),
        migrations.CreateModel(
            name='VoterRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('user_id', models.CharField(max_length=200)),
                ('has_voted', models.BooleanField(default=False)),
                ('voted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='voter_records', to='core.election')),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(fields=('election', 'user_id'), name='voter_record_unique'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Vote',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('voter_id', models.CharField(max_length=200)),
                ('cast_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('candidate', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='votes', to='core.candidate')),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='votes', to='core.election')),
            ],
            options={
                'indexes': [
                    models.Index(fields=['election', 'candidate'], name='vote_candidate_idx'),
                    models.Index(fields=['cast_at'], name='vote_cast_at_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('election', 'voter_id'), name='vote_once_per_election'),
                ],
            },
        ),
    ]
