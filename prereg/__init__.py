"""Pre-registration referral & reward service."""

__version__ = "1.0.0"
