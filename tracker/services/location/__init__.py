"""
Location Service - Adaptive Background Polling

Responsibilities:
- Background poll with cache-first, bounded-time fixes (worker.py)
- Unique periodic job whose interval follows motion state (work_scheduler.py)
- Motion transitions from activity recognition (activity.py)
- Last known location and bounded pending queue (repository.py)
- Instant foreground fixes (foreground.py)
- Start/stop orchestration (coordinator.py)
"""
