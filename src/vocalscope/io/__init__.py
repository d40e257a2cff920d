"""Serialization of engine output."""
