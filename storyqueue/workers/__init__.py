"""Queue workers, dispatch trigger and monitor"""

from .job_processor import JobProcessor
from .dispatch import trigger_worker
from .monitor import run_monitor

__all__ = ['JobProcessor', 'trigger_worker', 'run_monitor']
