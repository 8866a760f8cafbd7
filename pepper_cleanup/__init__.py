"""Pepper case retention cleanup service."""
