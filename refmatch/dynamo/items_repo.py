from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Sequence

from boto3.dynamodb.conditions import Attr

from ..isbn import clean_isbn
from ..logging_setup import get_logger, with_extras
from ..matching.identifiers import clean_doi
from ..models import RecordHandle, record_from_dict
from .client import get_dynamo_resource
from .tables import items_table_name

logger = get_logger(__name__)

# repository field name -> stored attribute; identifiers are matched on
# their normalized shadow copies, the entered values are kept for display
_ATTRIBUTES = {
    "doi": "doi_norm",
    "isbn": "isbn_norm",
    "auxiliary_text": "auxiliary_text",
    "url": "url",
    "creator": "creators_text",
}


def _strip_nones(d: Dict[str, Any]) -> Dict[str, Any]:
    """Return a shallow copy of dict without None values (DynamoDB rejects None)."""
    return {k: v for k, v in d.items() if v is not None}


def normalized_doi(value: Optional[str]) -> Optional[str]:
    cleaned = clean_doi(value)
    return cleaned.lower() if cleaned else None


# exact-match values pass through the same normalizer on write and on query
_NORMALIZERS = {
    "doi": normalized_doi,
    "isbn": clean_isbn,
}


def _attribute(field_name: str) -> str:
    try:
        return _ATTRIBUTES[field_name]
    except KeyError:
        raise ValueError(f"unknown item field: {field_name}") from None


def _with_exclusions(condition, exclude_types: Sequence[str]):
    for item_type in exclude_types:
        condition = condition & Attr("item_type").ne(item_type)
    return condition


def item_to_record(item: Dict[str, Any]) -> RecordHandle:
    return record_from_dict(item)


def record_to_item(record: RecordHandle) -> Dict[str, Any]:
    creators = [
        _strip_nones({"first_name": c.first_name, "last_name": c.last_name, "name": c.name})
        for c in record.creators
    ]
    names = []
    for c in record.creators:
        full = " ".join(p for p in (c.first_name, c.last_name) if p) or (c.name or "")
        if full:
            names.append(full)
    return _strip_nones({
        "key": record.key,
        "item_type": record.item_type,
        "title": record.title,
        "date": record.date,
        "creators": creators or None,
        "creators_text": "; ".join(names) or None,
        "auxiliary_text": record.auxiliary_text,
        "url": record.url,
        "doi": record.doi,
        "doi_norm": normalized_doi(record.doi),
        "isbn": record.isbn,
        "isbn_norm": clean_isbn(record.isbn),
        "issn": record.issn,
        "updated_at": dt.datetime.now(dt.timezone.utc).isoformat(),
    })


class ItemsRepo:
    """
    Library records in the `library_items` table. Lookups other than by key
    are filtered scans; the table is expected to be small enough for that.
    """

    def __init__(self, table=None) -> None:
        if table is None:
            ddb = get_dynamo_resource()
            table = ddb.Table(items_table_name())
        self.table = table

    def _scan(self, condition) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        resp = self.table.scan(FilterExpression=condition)
        items.extend(resp.get("Items", []))
        while resp.get("LastEvaluatedKey"):
            resp = self.table.scan(FilterExpression=condition, ExclusiveStartKey=resp["LastEvaluatedKey"])
            items.extend(resp.get("Items", []))
        return items

    def find_by_exact_field(
        self, field_name: str, value: str, exclude_types: Sequence[str]
    ) -> List[RecordHandle]:
        attribute = _attribute(field_name)
        normalize = _NORMALIZERS.get(field_name)
        if normalize is not None:
            value = normalize(value)
            if not value:
                return []
        condition = _with_exclusions(Attr(attribute).eq(value), exclude_types)
        items = self._scan(condition)
        with_extras(logger, field=field_name, count=len(items)).debug("exact field scan")
        return [item_to_record(i) for i in items]

    def find_by_contains(
        self, field_name: str, substring: str, exclude_types: Sequence[str]
    ) -> List[RecordHandle]:
        condition = _with_exclusions(Attr(_attribute(field_name)).contains(substring), exclude_types)
        items = self._scan(condition)
        with_extras(logger, field=field_name, count=len(items)).debug("contains scan")
        return [item_to_record(i) for i in items]

    def get_record(self, key: str) -> Optional[RecordHandle]:
        resp = self.table.get_item(Key={"key": key})
        item = resp.get("Item")
        return item_to_record(item) if item else None

    def put_record(self, record: RecordHandle) -> None:
        if not record.key:
            raise ValueError("record key is required")
        self.table.put_item(Item=record_to_item(record))
