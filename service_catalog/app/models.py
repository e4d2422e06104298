"""
Product data models for the Catalog Service.
"""

from typing import Dict, Any, Optional, List, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, StrictInt, StrictStr

from shared.errors import InvalidInputError


CACHE_KEY_PREFIX = "product:"

# Columns a partial update may touch; everything else is authority-maintained.
UPDATABLE_FIELDS = ("name", "price")


def product_cache_key(product_id: int) -> str:
    """Derive the cache key for a product identity."""
    return f"{CACHE_KEY_PREFIX}{product_id}"


class Provenance(str, Enum):
    """Tier that satisfied an operation."""
    CACHE = "cache"
    REPLICA = "replica"
    PRIMARY = "primary"
    PRIMARY_FALLBACK = "primary (fallback)"


@dataclass(frozen=True)
class Product:
    """Product record as held by the authority."""
    id: int
    name: str
    price: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Product":
        return cls(
            id=row["id"],
            name=row["name"],
            price=row["price"],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Product":
        """Rebuild a product from its JSON form."""
        return cls(
            id=int(data["id"]),
            name=data["name"],
            price=int(data["price"]),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class ProductDraft:
    """Validated attributes for a product that does not exist yet."""
    name: str
    price: int

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "ProductDraft":
        """Validate create input; raises InvalidInputError before any store access."""
        missing = [f for f in ("name", "price") if _is_blank(attributes.get(f))]
        if missing:
            raise InvalidInputError("name and price are required", details={"missing": missing})
        return cls(name=_validate_name(attributes["name"]), price=_validate_price(attributes["price"]))


@dataclass(frozen=True)
class ProductUpdate:
    """Partial update: only the fields that are set are written."""
    name: Optional[str] = None
    price: Optional[int] = None

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "ProductUpdate":
        """Validate update input; at least one updatable field must be supplied."""
        supplied = {f: attributes[f] for f in UPDATABLE_FIELDS if attributes.get(f) is not None}
        if not supplied:
            raise InvalidInputError(
                "name or price required",
                details={"updatable_fields": list(UPDATABLE_FIELDS)}
            )
        return cls(
            name=_validate_name(supplied["name"]) if "name" in supplied else None,
            price=_validate_price(supplied["price"]) if "price" in supplied else None,
        )

    def changes(self) -> Dict[str, Any]:
        return {f: getattr(self, f) for f in UPDATABLE_FIELDS if getattr(self, f) is not None}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError("name must be a non-empty string", details={"field": "name"})
    return name.strip()


def _validate_price(price: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
        raise InvalidInputError(
            "price must be a positive integer in minor currency units",
            details={"field": "price"}
        )
    return price


@dataclass(frozen=True)
class ReadResult:
    """Outcome of a read: the data plus the tier that produced it."""
    data: Any
    source: Provenance
    cached_at: Optional[datetime] = None


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write against the authority."""
    data: Product
    source: Provenance = Provenance.PRIMARY
    cache_invalidated: bool = False


class ProductCreateRequest(BaseModel):
    """Request model for creating a product.

    Strict types keep JSON ``true``, ``"999"`` and ``999.0`` from being
    coerced into a price.
    """
    name: Optional[StrictStr] = Field(None, description="Product name")
    price: Optional[StrictInt] = Field(None, description="Price in minor currency units")


class ProductUpdateRequest(BaseModel):
    """Request model for a partial product update."""
    name: Optional[StrictStr] = Field(None, description="Product name")
    price: Optional[StrictInt] = Field(None, description="Price in minor currency units")


class ProductResponse(BaseModel):
    """Response model for a single product."""
    success: bool = True
    source: Provenance
    data: Dict[str, Any]
    cached_at: Optional[datetime] = None


class ProductWriteResponse(BaseModel):
    """Response model for create, update and delete."""
    success: bool = True
    source: Provenance = Provenance.PRIMARY
    data: Dict[str, Any]
    cache_invalidated: Optional[bool] = None


class ProductListResponse(BaseModel):
    """Response model for the product collection."""
    success: bool = True
    source: Provenance
    count: int
    data: List[Dict[str, Any]] = Field(default_factory=list)
