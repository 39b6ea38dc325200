"""
Periodic tasks.

Every task class listed in TASKS is started once the bot is ready and runs
on its manifest's interval.
"""

from hydrabot.tasks.livestreams import LivestreamsTask

TASKS = [LivestreamsTask]

__all__ = ["TASKS", "LivestreamsTask"]
