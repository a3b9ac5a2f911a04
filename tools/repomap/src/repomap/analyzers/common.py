from __future__ import annotations

from dataclasses import dataclass, field

from repomap.schemas import (
    APICall,
    APIEndpoint,
    ComponentInfo,
    CoverageMetrics,
    DataFlow,
    GraphQLOperation,
    ModelInfo,
    PageInfo,
)

FACT_KINDS = (
    "pages",
    "graphql_operations",
    "api_calls",
    "components",
    "data_flows",
    "api_endpoints",
    "models",
)


@dataclass(slots=True)
class FactBag:
    """Partial analysis result produced by one analyzer."""

    pages: list[PageInfo] = field(default_factory=list)
    graphql_operations: list[GraphQLOperation] = field(default_factory=list)
    api_calls: list[APICall] = field(default_factory=list)
    components: list[ComponentInfo] = field(default_factory=list)
    data_flows: list[DataFlow] = field(default_factory=list)
    api_endpoints: list[APIEndpoint] = field(default_factory=list)
    models: list[ModelInfo] = field(default_factory=list)
    coverage: CoverageMetrics | None = None

    @classmethod
    def empty(cls) -> FactBag:
        return cls()
