"""
Application Interfaces (Ports)

Abstract interfaces that define contracts between the application
layer and infrastructure adapters. These are the "ports" in
hexagonal architecture.
"""

from tabletop_audio.application.interfaces.broadcast_channel import BroadcastChannel, Subscription

__all__ = [
    "BroadcastChannel",
    "Subscription",
]
