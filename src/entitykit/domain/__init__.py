"""Domain layer — rows, record sets, snapshots, change classification.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
