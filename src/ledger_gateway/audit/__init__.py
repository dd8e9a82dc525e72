"""Audit persistence, recording, and reconciliation."""
