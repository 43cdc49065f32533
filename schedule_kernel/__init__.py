"""
Schedule Kernel

Foundation layer for the schedule & earned-value engine:
- Typed exception hierarchy
- Structured JSON logging
- Injectable clock
- Domain DTOs (tasks, edges, schedules, baselines, EV snapshots)
- SQLAlchemy persistence for baselines, EV snapshots and schedule results
"""

__version__ = "0.1.0"
