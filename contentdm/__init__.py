from .metadata_fetcher.harvester import Harvester, get_record
from .metadata_mapper.mappers.mapper import Record, RecordSource
from .metadata_mapper.mappers.field_map import FieldMap, GenericMapper
from .metadata_mapper.registry import MapperRegistry, default_registry

__all__ = [
    "Harvester",
    "get_record",
    "Record",
    "RecordSource",
    "FieldMap",
    "GenericMapper",
    "MapperRegistry",
    "default_registry",
]
