"""Referral attribution, referral earnings and ad event tracking."""

__version__ = "1.0.0"
