from . import notifications, tasks

__all__ = ["notifications", "tasks"]
