"""
Task subsystem.

Components:
- task_models.py: data structures (Task, RecurrencePattern, RegenerateMode, Priority)
- task_store.py: SQLite-backed storage for tasks and tags
- recurrence.py: next-due-date arithmetic (pure)
- completion.py: complete a task and spawn the next instance of a series
- task_api.py: small high-level helpers used by the rest of the app
"""
