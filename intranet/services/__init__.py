"""Workflows of the corporate network, one module per concern."""
