"""Scheduled tasks.

- Day-before appointment reminders
"""

from dentbook.tasks.reminders import run_reminder_task

__all__ = ["run_reminder_task"]
