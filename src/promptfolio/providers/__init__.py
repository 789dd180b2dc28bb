"""Hosting provider clients."""
