"""jobspine - recurring cron jobs with store-reconciled timers."""

__version__ = "0.3.0"
