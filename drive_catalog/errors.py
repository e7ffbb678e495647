from __future__ import annotations

from typing import Iterable


def format_sample(rows: Iterable[object], limit: int = 10) -> str:
    items = [str(row) for row in rows]
    if not items:
        return "none"
    shown = items[:limit]
    suffix = f" (+{len(items) - limit} more)" if len(items) > limit else ""
    return "; ".join(shown) + suffix


class CatalogMigrationError(RuntimeError):
    """Fatal condition that aborts the whole catalog migration."""


class ReferentialIntegrityViolation(CatalogMigrationError):
    """A foreign key no longer resolves to a surviving parent row."""


class DuplicateSurvivesCutover(CatalogMigrationError):
    """A natural-key duplicate is still present when the cutover starts."""


class IdentityCollision(CatalogMigrationError):
    """Two freshly generated identifiers coincide."""
