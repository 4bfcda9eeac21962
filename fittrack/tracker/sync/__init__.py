"""Backend synchronization for the step tracker.

Modules:
    scheduler — sync trigger rules and the single-flight push runner
    client    — httpx client for the fitness service REST API
"""
