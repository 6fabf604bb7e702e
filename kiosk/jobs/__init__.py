# Jobs Package - Scheduled background tasks
from .customer_sync import CustomerSyncScheduler, get_scheduler, start_scheduler, stop_scheduler

__all__ = ["CustomerSyncScheduler", "get_scheduler", "start_scheduler", "stop_scheduler"]
