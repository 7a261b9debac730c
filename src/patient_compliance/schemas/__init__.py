"""Typed domain records and request/response schemas."""
