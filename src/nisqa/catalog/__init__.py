from nisqa.catalog.binding import binding_to_strings, infer_binding, parse_assignments
from nisqa.catalog.events import CatalogEvent, CatalogEventBus, RuleRegistrationSubscriber
from nisqa.catalog.loader import catalog_from_payload, load_catalog
from nisqa.catalog.repository import Catalog, InMemoryCatalog
from nisqa.catalog.types import (
    Algorithm,
    Binding,
    DataType,
    Implementation,
    Parameter,
    ParameterValue,
    Target,
)

__all__ = [
    "Algorithm",
    "Binding",
    "Catalog",
    "CatalogEvent",
    "CatalogEventBus",
    "DataType",
    "Implementation",
    "InMemoryCatalog",
    "Parameter",
    "ParameterValue",
    "RuleRegistrationSubscriber",
    "Target",
    "binding_to_strings",
    "catalog_from_payload",
    "infer_binding",
    "load_catalog",
    "parse_assignments",
]
