"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, entitykit.toml only contains
overrides plus one ``[entities.<name>]`` table per bound entity.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class DatabaseConfig(BaseModel):
    """[database] section."""

    model_config = {"frozen": True}

    url: str = "sqlite:///entitykit.db"
    echo: bool = False
    busy_timeout: float = 5.0
    statement_timeout: float | None = None


class ReadConfig(BaseModel):
    """[read] section."""

    model_config = {"frozen": True}

    query_timeout: float | None = None


class UpdateConfig(BaseModel):
    """[update] section."""

    model_config = {"frozen": True}

    max_workers: int = Field(default=1, ge=1)
    apply_timeout: float | None = None
    max_reported_failures: int = Field(default=10, ge=0)


class EntityConfig(BaseModel):
    """[entities.<name>] section — one concrete entity as configuration.

    Attributes:
        table: Primary table; reads come from here.
        identity: Identity (unique key) columns.
        skip: Columns never written (server-computed, read-only).
        conflict: Columns whose read-time values guard updates/deletes.
        targets: Every write target in order; defaults to ``[table]``.
    """

    model_config = {"frozen": True}

    table: str
    identity: list[str] = Field(default_factory=lambda: ["id"], min_length=1)
    skip: list[str] = Field(default_factory=list)
    conflict: list[str] = Field(default_factory=list)
    targets: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _primary_target_first(self) -> EntityConfig:
        if self.targets and self.targets[0] != self.table:
            msg = f"targets must start with the primary table {self.table!r}"
            raise ValueError(msg)
        return self

    @property
    def write_targets(self) -> list[str]:
        return self.targets or [self.table]
