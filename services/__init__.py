"""Caller-side services: sessions and conversational turns."""
