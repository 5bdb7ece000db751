"""Bundled example workflows."""
