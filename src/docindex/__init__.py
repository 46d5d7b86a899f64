"""Persistent inverted-index search engine."""
