"""Shared test fixtures for gitdata_commit."""
