"""Typed payloads for terminal events and dashboard messages."""
