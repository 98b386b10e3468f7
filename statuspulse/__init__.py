"""
StatusPulse - status page subscriptions and notification dispatch
"""

__version__ = "1.0.0"
