"""Core rules engine and room state machine for trumpcall."""

__all__ = [
    "actions",
    "bidding",
    "cards",
    "config",
    "database",
    "deck",
    "errors",
    "events",
    "machine",
    "naming",
    "registry",
    "rules",
    "scheduler",
    "service",
    "state",
    "store",
    "trick",
]
