"""Test fixtures for census tests."""
