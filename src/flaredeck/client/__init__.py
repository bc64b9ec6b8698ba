from .api import CloudflareClient
from .queues import create_queue, get_queue

__all__ = ["CloudflareClient", "create_queue", "get_queue"]
