"""Conversation log: storage and routes."""
