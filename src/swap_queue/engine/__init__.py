"""Queue manager — lifecycle owner of storage, migration and scheduling."""

from swap_queue.engine.client import QueueManager

__all__ = ["QueueManager"]
