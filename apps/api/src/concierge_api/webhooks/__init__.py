"""Inbound scheduling webhooks."""
