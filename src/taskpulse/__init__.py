"""taskpulse: recurring tasks and reminder scheduling for a personal task manager."""

__version__ = "0.1.0"
