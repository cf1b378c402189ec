"""Game domain services: line detection and idle-room reaping.

This package holds logic imported by the room model and the app factory,
keeping transport concerns separated from board rules.
"""
