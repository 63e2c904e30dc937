"""Spotify credential proxy service."""
