"""API Routes"""

from . import calls, webhooks, health

__all__ = ["calls", "webhooks", "health"]
