"""
SpeedOps - multi-tenant operations dashboard backend.

Task lifecycle with gated, proof-carrying transitions, a unified error
queue fed by tagged task comments, an append-only activity feed, and
generative project briefs.
"""

__version__ = "0.1.0"
