"""Courier: a real-time one-to-one chat backend."""
