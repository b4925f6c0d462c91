from . import live, notifications, push, tasks

__all__ = ["live", "notifications", "push", "tasks"]
