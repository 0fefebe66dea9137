"""State/store layer.

This package is the single source of truth for how replies to polls and
push signals from the remote service are merged into one canonical
snapshot, and for the connection state the engine exposes.
"""
