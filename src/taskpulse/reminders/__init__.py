"""
Reminder subsystem.

Components:
- reminder_models.py: Reminder, ReminderEvent, Urgency
- reminder_store.py: SQLite-backed storage
- reminder_scheduler.py: live timer table, delivery, snooze/cancel/delete
- reminder_sweep.py: periodic fallback that delivers anything the timers missed
"""
