"""Lenscape photo-sharing and marketplace backend."""
