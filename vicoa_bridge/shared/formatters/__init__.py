"""Renderers turning terminal message parts into dashboard text."""
