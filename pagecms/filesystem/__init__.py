"""Seed directory scanning and parsing."""
