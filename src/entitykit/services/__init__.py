"""Service layer — bindings, orchestrators, registry, caller-facing results.

Services may import from domain, infrastructure, and config.
They must never import from commands or output.
"""
