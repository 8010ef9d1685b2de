"""
ATS Tests Package - matching and interview booking

Test Modules:
- test_scoring.py: skill matching, ranking, gap analysis, scoring service
- test_scheduling.py: slot generation, intersection, conflicts, availability
- test_booking.py: booking lifecycle, provider failures, reconciliation
- test_models.py: interview state machine and database constraints
- test_serializers.py: request payload validation
- test_services.py: settings-driven service entry points
- test_tasks.py: periodic Celery tasks

Running Tests:
    pytest ats/tests/ -v
    pytest ats/tests/ -v -m booking
"""
