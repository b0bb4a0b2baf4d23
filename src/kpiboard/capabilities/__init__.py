"""Capability interfaces and data models."""
