"""
Manufacturer and supplier links for parts.

Both sourcing kinds expose the same four operations (list, linked, link,
unlink). The kind is a closed enum and the matching implementation is
chosen with an exhaustive match, so adding a kind is a type error until
every dispatch site handles it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Union, assert_never

from .catalog import PartCatalog
from .errors import NotFoundError, ValidationError
from .util import new_id


class SourcingKind(str, Enum):
    MANUFACTURER = "manufacturer"
    SUPPLIER = "supplier"


_CODE_RE = re.compile(r"^[A-Z0-9-]{1,20}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _validate_code(code: str) -> str:
    code = code.strip()
    if not _CODE_RE.fullmatch(code):
        raise ValidationError(
            "Code must be 1-20 characters of uppercase letters, numbers, and hyphens", field="code"
        )
    return code


def _validate_name(name: str) -> str:
    name = name.strip()
    if not 2 <= len(name) <= 255:
        raise ValidationError("Name must be between 2 and 255 characters", field="name")
    return name


@dataclass
class Manufacturer:
    id: str
    code: str
    name: str
    website: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        self.code = _validate_code(self.code)
        self.name = _validate_name(self.name)
        if self.website and not self.website.startswith(("http://", "https://")):
            raise ValidationError("Invalid URL", field="website")


@dataclass
class Supplier:
    id: str
    code: str
    name: str
    contact_email: str | None = None
    contact_phone: str | None = None
    address: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        self.code = _validate_code(self.code)
        self.name = _validate_name(self.name)
        if self.contact_email and not _EMAIL_RE.fullmatch(self.contact_email):
            raise ValidationError("Invalid email address", field="contact_email")


SourcingEntity = Union[Manufacturer, Supplier]


@dataclass
class _EntityTable:
    label: str  # used in error messages
    entities: dict[str, SourcingEntity] = field(default_factory=dict)
    links: dict[str, list[str]] = field(default_factory=dict)  # part_id -> entity ids, in link order

    def add(self, entity: SourcingEntity) -> SourcingEntity:
        if entity.id in self.entities:
            raise ValidationError(f"{self.label} {entity.id} already exists", field="id")
        if any(e.code == entity.code for e in self.entities.values()):
            raise ValidationError(f"{self.label} code {entity.code} already exists", field="code")
        self.entities[entity.id] = entity
        return entity


class SourcingRegistry:
    """In-memory manufacturers, suppliers, and their part links."""

    def __init__(self, catalog: PartCatalog):
        self.catalog = catalog
        self.manufacturers = _EntityTable("Manufacturer")
        self.suppliers = _EntityTable("Supplier")

    def add_manufacturer(self, code: str, name: str, **fields: str | None) -> Manufacturer:
        manufacturer = Manufacturer(id=new_id("mfr"), code=code, name=name, **fields)
        self.manufacturers.add(manufacturer)
        return manufacturer

    def add_supplier(self, code: str, name: str, **fields: str | None) -> Supplier:
        supplier = Supplier(id=new_id("sup"), code=code, name=name, **fields)
        self.suppliers.add(supplier)
        return supplier


class SourcingLinks(Protocol):
    """The fixed interface every sourcing kind provides."""

    def list(self) -> list[SourcingEntity]:
        ...

    def linked(self, part_id: str) -> list[SourcingEntity]:
        ...

    def link(self, part_id: str, entity_id: str) -> None:
        ...

    def unlink(self, part_id: str, entity_id: str) -> None:
        ...


class _TableLinks:
    def __init__(self, registry: SourcingRegistry, table: _EntityTable):
        self.registry = registry
        self.table = table

    def list(self) -> list[SourcingEntity]:
        return sorted(self.table.entities.values(), key=lambda e: e.name)

    def linked(self, part_id: str) -> list[SourcingEntity]:
        return [self.table.entities[i] for i in self.table.links.get(part_id, [])]

    def link(self, part_id: str, entity_id: str) -> None:
        if self.registry.catalog.get_part(part_id) is None:
            raise NotFoundError("Part", part_id)
        if entity_id not in self.table.entities:
            raise NotFoundError(self.table.label, entity_id)
        linked = self.table.links.setdefault(part_id, [])
        if entity_id in linked:
            raise ValidationError(f"{self.table.label} already linked to this part", field="part_id")
        linked.append(entity_id)

    def unlink(self, part_id: str, entity_id: str) -> None:
        linked = self.table.links.get(part_id, [])
        if entity_id not in linked:
            raise NotFoundError(f"{self.table.label}-Part link", f"{entity_id}:{part_id}")
        linked.remove(entity_id)


class ManufacturerLinks(_TableLinks):
    def __init__(self, registry: SourcingRegistry):
        super().__init__(registry, registry.manufacturers)


class SupplierLinks(_TableLinks):
    def __init__(self, registry: SourcingRegistry):
        super().__init__(registry, registry.suppliers)


def sourcing_links(kind: SourcingKind | str, registry: SourcingRegistry) -> SourcingLinks:
    """Pick the link operations for `kind`."""
    try:
        kind = SourcingKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown sourcing kind: {kind!r}", field="kind") from None

    match kind:
        case SourcingKind.MANUFACTURER:
            return ManufacturerLinks(registry)
        case SourcingKind.SUPPLIER:
            return SupplierLinks(registry)
        case _:
            assert_never(kind)
