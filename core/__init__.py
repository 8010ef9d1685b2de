"""
Core - Shared Infrastructure for HireMatch

This module provides foundational components shared by the apps:
- Scheduling exception taxonomy
- Timezone-aware time slot utilities
- Bounded retry with exponential backoff for external calls
"""
