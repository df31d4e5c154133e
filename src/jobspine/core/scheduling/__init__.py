"""Scheduling core for jobspine.

Manifesto:
    A recurring job is only as reliable as the bookkeeping around each tick.
    This package turns cron expressions into live timers bound to job ids,
    runs each firing through the executor, and keeps the live timer set
    converged with the store's active jobs.

┌──────────────────────────────────────────────────────────────────────────────┐
│  JOBSPINE SCHEDULER                                                           │
│                                                                               │
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐   │
│  │   from jobspine.core.scheduling import SchedulerCoordinator          │   │
│  │   from jobspine.jobs import InMemoryJobStore, JobService              │   │
│  │                                                                      │   │
│  │   store = InMemoryJobStore()                                         │   │
│  │   coordinator = SchedulerCoordinator(store)                          │   │
│  │   coordinator.start()                                                │   │
│  │                                                                      │   │
│  │   JobService(store, coordinator).create_job({                        │   │
│  │       "name": "nightly-report",                                      │   │
│  │       "cron_schedule": "0 2 * * *",                                  │   │
│  │       "type": "report",                                              │   │
│  │   })                                                                 │   │
│  └──────────────────────────────────────────────────────────────────────┘   │
│                                                                               │
│  Components (leaf first):                                                     │
│    cron.py        CronEvaluator       expression → next trigger (croniter)    │
│    registry.py    TimerRegistry       job id → RecurringTimer                 │
│    executor.py    JobExecutor         handler + store bookkeeping             │
│    discovery.py   DiscoveryLoop       store ⇄ registry reconciliation         │
│    service.py     SchedulerCoordinator                                        │
│                                                                               │
│  Discovery timing backends:                                                   │
│    thread_backend.py       default                                            │
│    apscheduler_backend.py  optional, pip install jobspine[apscheduler]        │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from .cron import CronEvaluator, next_trigger, validate_expression
from .discovery import DiscoveryLoop, ReconcileResult
from .executor import ExecutionResult, JobExecutor
from .handlers import HandlerTable
from .protocol import BackendHealth, SchedulerBackend
from .registry import RecurringTimer, TimerEntry, TimerRegistry
from .service import SchedulerCoordinator, SchedulerStatus
from .thread_backend import ThreadSchedulerBackend

__all__ = [
    "CronEvaluator",
    "next_trigger",
    "validate_expression",
    "TimerRegistry",
    "TimerEntry",
    "RecurringTimer",
    "HandlerTable",
    "JobExecutor",
    "ExecutionResult",
    "DiscoveryLoop",
    "ReconcileResult",
    "SchedulerBackend",
    "BackendHealth",
    "ThreadSchedulerBackend",
    "SchedulerCoordinator",
    "SchedulerStatus",
]
