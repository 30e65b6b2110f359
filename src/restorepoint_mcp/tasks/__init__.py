"""Async task tracking for long-running Restorepoint operations.

- ``models``: Task records, filters and the status state machine
- ``task_manager``: Registry with timeouts and periodic cleanup
- ``runner``: Background execution of jobs bound to task records
"""
