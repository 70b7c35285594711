"""
Web layer for the print spooler.

Blueprints:
- api_bp: JSON API (v1) over the job store (list/submit/cancel/retry/confirm/remove)
- health_bp: /healthz
"""

from .api import api_bp
from .health import health_bp

__all__ = ["api_bp", "health_bp"]
