"""Backends for the capability interfaces."""
