"""Job scheduling module."""

from sftp_fetcher.scheduler.cron import CronSchedule, ScheduleParseError
from sftp_fetcher.scheduler.scheduler import Scheduler

__all__ = ["CronSchedule", "ScheduleParseError", "Scheduler"]
