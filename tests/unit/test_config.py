"""
Unit tests for QueryConfig construction and validation.
"""

from datetime import date

import pytest

from holdings_calc.contracts.config import (
    DEFAULT_CATEGORIES,
    DEFAULT_MAX_DEPTH,
    MAX_DEPTH_CEILING,
    VALUE_METRIC,
    HavingFilter,
    QueryConfig,
)
from holdings_calc.contracts.errors import InvalidQueryError


AS_OF = date(2025, 1, 1)


class TestFactories:
    """Factory methods set the query mode."""

    def test_per_leaf_defaults(self) -> None:
        config = QueryConfig.per_leaf(roots=[3, 1], as_of=AS_OF)

        assert config.roots == (3, 1)
        assert config.max_depth == DEFAULT_MAX_DEPTH
        assert config.categories == DEFAULT_CATEGORIES
        assert not config.is_aggregate

    def test_aggregate(self) -> None:
        config = QueryConfig.aggregate(
            roots=[1],
            as_of=AS_OF,
            group_by=["region", "sector"],
            having=HavingFilter(min_count=5),
        )

        assert config.is_aggregate
        assert config.group_by == ("region", "sector")
        assert config.having == HavingFilter(min_count=5)
        assert VALUE_METRIC in config.metrics

    def test_config_is_immutable(self) -> None:
        config = QueryConfig.per_leaf(roots=[1], as_of=AS_OF)

        with pytest.raises(AttributeError):
            config.max_depth = 3


class TestValidate:
    """Malformed queries are rejected before traversal."""

    def test_valid_query_passes(self, registry) -> None:
        QueryConfig.per_leaf(roots=[1], as_of=AS_OF).validate(registry)

    def test_empty_roots(self, registry) -> None:
        with pytest.raises(InvalidQueryError, match="root"):
            QueryConfig.per_leaf(roots=[], as_of=AS_OF).validate(registry)

    @pytest.mark.parametrize("max_depth", [0, -1])
    def test_non_positive_max_depth(self, registry, max_depth: int) -> None:
        with pytest.raises(InvalidQueryError, match="max_depth"):
            QueryConfig.per_leaf(roots=[1], as_of=AS_OF, max_depth=max_depth).validate(registry)

    def test_max_depth_ceiling(self, registry) -> None:
        QueryConfig.per_leaf(roots=[1], as_of=AS_OF, max_depth=MAX_DEPTH_CEILING).validate(
            registry
        )
        with pytest.raises(InvalidQueryError, match="ceiling"):
            QueryConfig.per_leaf(
                roots=[1], as_of=AS_OF, max_depth=MAX_DEPTH_CEILING + 1
            ).validate(registry)

    def test_unknown_category(self, registry) -> None:
        with pytest.raises(InvalidQueryError, match="Unknown category 'ratings'"):
            QueryConfig.per_leaf(roots=[1], as_of=AS_OF, categories=["ratings"]).validate(registry)

    def test_as_of_must_be_date(self, registry) -> None:
        with pytest.raises(InvalidQueryError, match="as_of"):
            QueryConfig(roots=(1,), as_of="2025-01-01").validate(registry)

    def test_percentile_range(self, registry) -> None:
        config = QueryConfig.aggregate(roots=[1], as_of=AS_OF, group_by=["region"], percentile=1.2)
        with pytest.raises(InvalidQueryError, match="percentile"):
            config.validate(registry)

    def test_workers_must_be_positive(self, registry) -> None:
        with pytest.raises(InvalidQueryError, match="workers"):
            QueryConfig.per_leaf(roots=[1], as_of=AS_OF, workers=0).validate(registry)
