"""Match engine services: rooms, matchmaking, judging, scoring and completion.

This package holds the domain logic imported by HTTP routes, keeping
transport concerns separated from the match state machine.
"""
