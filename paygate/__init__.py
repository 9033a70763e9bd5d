"""
paygate

Subscription tier gating, usage quotas and paywall cadence for the
journaling app.
"""

__version__ = "0.1.0"
