"""
Attribute category descriptors.

Each category groups related fields sharing one fact source. Fields carry a
resolution policy (inheritable or leaf-only) and a polars dtype; a category
may restrict which node kinds contribute values through its scope.

Default categories:
- portfolio      # Portfolio naming/strategy, inherited from portfolio nodes only
- risk           # Risk classification, inherited from any level; credit_rating leaf-only
- esg            # ESG scores, inherited from any level
- market_data    # Pricing (leaf-only)
- fundamentals   # Financial metrics (leaf-only)
- instrument     # Reference identifiers (leaf-only)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import polars as pl

from holdings_calc.contracts.errors import InvalidQueryError
from holdings_calc.domain.enums import FieldPolicy, NodeKind


@dataclass(frozen=True)
class FieldSpec:
    """A single category field."""

    name: str
    policy: FieldPolicy = FieldPolicy.INHERITABLE
    dtype: pl.DataType | type[pl.DataType] = pl.String


@dataclass(frozen=True)
class AttributeCategory:
    """
    Named group of fields with a shared fact source.

    Attributes:
        name: Category name used in queries and store lookups
        fields: Field descriptors in output order
        scope: Node kinds allowed to contribute values (None = any kind)
        date_column: Date column of the category's fact table
    """

    name: str
    fields: tuple[FieldSpec, ...]
    scope: frozenset[str] | None = None
    date_column: str = "attribute_date"

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def inheritable_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.policy is FieldPolicy.INHERITABLE)

    @property
    def leaf_only_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.policy is FieldPolicy.LEAF_ONLY)

    def allows(self, kind: str | None) -> bool:
        """Whether a node of this kind may contribute values."""
        if self.scope is None:
            return True
        return kind in self.scope

    def schema(self) -> dict[str, pl.DataType | type[pl.DataType]]:
        return {f.name: f.dtype for f in self.fields}


# =============================================================================
# DEFAULT CATEGORIES
# =============================================================================

PORTFOLIO_ATTRIBUTES = AttributeCategory(
    name="portfolio",
    fields=(
        FieldSpec("portfolio_name"),
        FieldSpec("portfolio_strategy"),
        FieldSpec("portfolio_manager"),
        FieldSpec("benchmark"),
    ),
    scope=frozenset({NodeKind.PORTFOLIO}),
)

RISK_ATTRIBUTES = AttributeCategory(
    name="risk",
    fields=(
        FieldSpec("asset_class"),
        FieldSpec("region"),
        FieldSpec("sector"),
        FieldSpec("risk_rating"),
        FieldSpec("credit_rating", FieldPolicy.LEAF_ONLY),
    ),
)

ESG_SCORES = AttributeCategory(
    name="esg",
    fields=(
        FieldSpec("esg_score", dtype=pl.Float64),
        FieldSpec("environmental_score", dtype=pl.Float64),
        FieldSpec("social_score", dtype=pl.Float64),
        FieldSpec("governance_score", dtype=pl.Float64),
    ),
    date_column="score_date",
)

MARKET_DATA = AttributeCategory(
    name="market_data",
    fields=(
        FieldSpec("price", FieldPolicy.LEAF_ONLY, pl.Float64),
        FieldSpec("currency", FieldPolicy.LEAF_ONLY, pl.String),
        FieldSpec("bid_price", FieldPolicy.LEAF_ONLY, pl.Float64),
        FieldSpec("ask_price", FieldPolicy.LEAF_ONLY, pl.Float64),
        FieldSpec("volume", FieldPolicy.LEAF_ONLY, pl.Int64),
        FieldSpec("market_cap", FieldPolicy.LEAF_ONLY, pl.Float64),
    ),
    date_column="market_date",
)

FUNDAMENTALS = AttributeCategory(
    name="fundamentals",
    fields=(
        FieldSpec("revenue", FieldPolicy.LEAF_ONLY, pl.Float64),
        FieldSpec("ebitda", FieldPolicy.LEAF_ONLY, pl.Float64),
        FieldSpec("net_income", FieldPolicy.LEAF_ONLY, pl.Float64),
        FieldSpec("pe_ratio", FieldPolicy.LEAF_ONLY, pl.Float64),
        FieldSpec("debt_to_equity", FieldPolicy.LEAF_ONLY, pl.Float64),
    ),
    date_column="reporting_date",
)

INSTRUMENT_REFERENCE = AttributeCategory(
    name="instrument",
    fields=(
        FieldSpec("ticker", FieldPolicy.LEAF_ONLY),
        FieldSpec("isin", FieldPolicy.LEAF_ONLY),
    ),
    date_column="reference_date",
)

DEFAULT_CATEGORIES = (
    PORTFOLIO_ATTRIBUTES,
    RISK_ATTRIBUTES,
    ESG_SCORES,
    MARKET_DATA,
    FUNDAMENTALS,
    INSTRUMENT_REFERENCE,
)


class CategoryRegistry:
    """
    Lookup of attribute categories by name.

    Usage:
        registry = CategoryRegistry.default()
        risk = registry.get("risk")
        selected = registry.select(["risk", "market_data"])
    """

    def __init__(self, categories: Iterable[AttributeCategory]) -> None:
        self._categories: dict[str, AttributeCategory] = {}
        for category in categories:
            if category.name in self._categories:
                raise ValueError(f"Duplicate category: {category.name}")
            self._categories[category.name] = category

    @classmethod
    def default(cls) -> CategoryRegistry:
        return cls(DEFAULT_CATEGORIES)

    def __contains__(self, name: object) -> bool:
        return name in self._categories

    def __iter__(self) -> Iterator[AttributeCategory]:
        return iter(self._categories.values())

    def __len__(self) -> int:
        return len(self._categories)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._categories)

    def get(self, name: str) -> AttributeCategory:
        """
        Get a category by name.

        Raises:
            InvalidQueryError: If the category is not registered
        """
        try:
            return self._categories[name]
        except KeyError:
            known = ", ".join(sorted(self._categories))
            raise InvalidQueryError(f"Unknown category '{name}' (known: {known})") from None

    def select(self, names: Iterable[str]) -> tuple[AttributeCategory, ...]:
        """Resolve category names in order, rejecting unknown names."""
        return tuple(self.get(name) for name in names)
