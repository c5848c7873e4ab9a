"""Outly backend.

A small HTTP API for nightlife clubs and their events:

- Users register with email/username/password and log in for a JWT.
- Business accounts create clubs and publish events for the clubs they own.
- Everyone can browse clubs and upcoming events.

See README for setup and usage.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
