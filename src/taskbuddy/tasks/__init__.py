"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Priority, TaskType, Message)
- task_store.py: in-memory store mirrored to the persistence gateway
- notification_times.py: when a task should notify (pure functions)
- reminder_scheduler.py: polling reminder engine (snooze / triggered bookkeeping)
- tool_dispatcher.py: applies a turn's tool calls and builds the reply
- tool_schemas.py: tool declarations sent to the model
- analysis.py: productivity features + report rendering
- views.py: goal sorting and calendar queries
"""
