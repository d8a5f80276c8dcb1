"""Infrastructure layer — database engine and backing stores.

This layer depends on stdlib, SQLAlchemy, and the domain enums.
It must never import from services, commands, or output.
The service layer bridges between record sets and stores.
"""
