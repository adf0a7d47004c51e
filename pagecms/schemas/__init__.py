"""Pydantic models for stored CMS documents."""
