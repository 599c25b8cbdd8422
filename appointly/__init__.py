"""Appointly: appointment scheduling API."""
