from .taskQueue import DEFAULT_THRESHOLDS, FreshnessScheduler, QueueAction, TaskQueueProcessor
