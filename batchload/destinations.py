from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .errors import ConfigurationError
from .model import DestinationKey, TableDestination


@runtime_checkable
class DynamicDestinations(Protocol):
    """Resolves destination keys to tables."""

    def get_table(self, destination: DestinationKey) -> TableDestination: ...

    def default_destination(self) -> Optional[DestinationKey]: ...


class ConstantTableDestinations:
    """Every row goes to one fixed table."""

    def __init__(self, table_spec: str, schema: Optional[str] = None) -> None:
        self.table = TableDestination(table_spec, schema=schema)

    def get_table(self, destination: DestinationKey) -> TableDestination:
        return self.table

    def default_destination(self) -> Optional[DestinationKey]:
        return self.table.table_spec


class FormattedTableDestinations:
    """Builds table specs from a pattern such as ``"analytics.events_{}"``."""

    def __init__(self, pattern: str, schemas: Optional[Dict[Any, str]] = None) -> None:
        if "{" not in pattern:
            raise ValueError(f"Table pattern must contain a placeholder: {pattern}")
        self.pattern = pattern
        self.schemas = dict(schemas or {})

    def get_table(self, destination: DestinationKey) -> TableDestination:
        return TableDestination(self.pattern.format(destination), schema=self.schemas.get(destination))

    def default_destination(self) -> Optional[DestinationKey]:
        return None


def destinations_from_config(cfg: Dict[str, Any]) -> DynamicDestinations:
    """Build destinations from ``cfg["destination"]``: a fixed ``table`` or a ``table_pattern``."""
    dest_cfg = cfg.get("destination") or {}
    if dest_cfg.get("table"):
        return ConstantTableDestinations(dest_cfg["table"], schema=dest_cfg.get("schema"))
    if dest_cfg.get("table_pattern"):
        if not dest_cfg.get("key_field"):
            raise ConfigurationError("destination.key_field is required with destination.table_pattern")
        return FormattedTableDestinations(dest_cfg["table_pattern"], schemas=dest_cfg.get("schemas"))
    raise ConfigurationError("destination.table or destination.table_pattern is required")
