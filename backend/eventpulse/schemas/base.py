"""Shared base for record schemas and boundary validation of store documents."""
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from eventpulse.exceptions import MalformedRecord


class DocumentModel(BaseModel):
    """Record schema whose wire names are the camelCase document fields."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


RecordT = TypeVar("RecordT", bound=DocumentModel)


def parse_record(model: type[RecordT], collection: str, doc: Mapping[str, Any]) -> RecordT:
    """Validate a raw document, failing fast with MalformedRecord."""
    try:
        return model.model_validate(doc)
    except ValidationError as exc:
        record_id = doc.get("id") if isinstance(doc, Mapping) else None
        raise MalformedRecord(collection, record_id, exc.errors(include_url=False)) from exc


def parse_records(model: type[RecordT], collection: str, docs) -> list[RecordT]:
    return [parse_record(model, collection, doc) for doc in docs]
