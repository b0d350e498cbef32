"""Session domain services: records, subscriptions, presence and results.

This package contains the realtime-store logic that HTTP routes and socket
handlers delegate to, keeping transport concerns separated from the
session records themselves.
"""
