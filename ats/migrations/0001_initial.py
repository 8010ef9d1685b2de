import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='JobPosting',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('recruiter_id', models.CharField(db_index=True, help_text='Identifier of the recruiter who owns this posting', max_length=64)),
                ('required_skills', models.JSONField(blank=True, default=list)),
                ('preferred_skills', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Job Posting',
                'verbose_name_plural': 'Job Postings',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CandidateProfile',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('timezone', models.CharField(default='UTC', max_length=50)),
                ('skills', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Candidate Profile',
                'verbose_name_plural': 'Candidate Profiles',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='AvailabilityWindow',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('owner_id', models.CharField(db_index=True, max_length=64)),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField()),
                ('timezone', models.CharField(default='UTC', max_length=50)),
                ('status', models.CharField(choices=[('available', 'Available'), ('booked', 'Booked')], default='available', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Availability Window',
                'verbose_name_plural': 'Availability Windows',
                'ordering': ['start_time'],
                'indexes': [
                    models.Index(fields=['owner_id', 'start_time'], name='ats_availab_owner_i_5c1f0e_idx'),
                    models.Index(fields=['status', 'start_time'], name='ats_availab_status_9a7d2b_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('end_time__gt', models.F('start_time'))), name='availability_window_end_after_start'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SchedulingLock',
            fields=[
                ('owner_id', models.CharField(max_length=64, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Scheduling Lock',
                'verbose_name_plural': 'Scheduling Locks',
            },
        ),
        migrations.CreateModel(
            name='ScheduledInterview',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('recruiter_id', models.CharField(db_index=True, max_length=64)),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField()),
                ('timezone', models.CharField(default='UTC', max_length=50)),
                ('status', models.CharField(choices=[('requested', 'Requested'), ('pending_external', 'Pending External Confirmation'), ('confirmed', 'Confirmed'), ('failed', 'Failed'), ('cancelled', 'Cancelled'), ('rescheduled', 'Rescheduled')], default='requested', max_length=20)),
                ('external_booking_ref', models.CharField(blank=True, max_length=128)),
                ('failure_reason', models.TextField(blank=True)),
                ('cancel_requested', models.BooleanField(default=False)),
                ('reserved_until', models.DateTimeField(blank=True, help_text='Provisional reservation expiry while unconfirmed', null=True)),
                ('notes', models.TextField(blank=True)),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('candidate', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scheduled_interviews', to='ats.candidateprofile')),
                ('job', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scheduled_interviews', to='ats.jobposting')),
                ('rescheduled_from', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='rescheduled_to', to='ats.scheduledinterview')),
            ],
            options={
                'verbose_name': 'Scheduled Interview',
                'verbose_name_plural': 'Scheduled Interviews',
                'ordering': ['start_time'],
                'indexes': [
                    models.Index(fields=['candidate', 'start_time'], name='ats_schedul_candida_3e8b41_idx'),
                    models.Index(fields=['recruiter_id', 'start_time'], name='ats_schedul_recruit_7f02c6_idx'),
                    models.Index(fields=['status', 'reserved_until'], name='ats_schedul_status_b41d9a_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('end_time__gt', models.F('start_time'))), name='scheduled_interview_end_after_start'),
                    models.UniqueConstraint(condition=models.Q(('status__in', ['requested', 'pending_external', 'confirmed'])), fields=('job', 'candidate', 'recruiter_id', 'start_time', 'end_time'), name='unique_active_interview_request'),
                ],
            },
        ),
    ]
