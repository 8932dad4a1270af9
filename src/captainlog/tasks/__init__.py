"""
Task subsystem.

Components:
- task_models.py: value objects (TaskSchedule, Task) and their JSON projection
- task_store.py: SQLite-backed storage with a fixed statement catalog
- task_csv.py: legacy pipe-separated import/export
"""
