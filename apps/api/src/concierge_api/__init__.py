"""Referral Concierge API."""
