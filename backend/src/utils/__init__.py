"""Utility modules for Digest."""
