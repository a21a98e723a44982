"""Workflow editing backend: session state, auto-save, persistence and REST API."""
