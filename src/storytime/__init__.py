"""Storytime storytelling chat backend."""
