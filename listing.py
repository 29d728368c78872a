"""
List management: search, filter, sort, paginate and export a fetched
collection, plus single-field status toggles.

A ListView works on a snapshot fetched once; every derived view (filtered,
sorted, current page, export) is computed from that snapshot and the view's
current search / filter / sort / page state. Entities differ only in their
ListSchema.
"""

import csv
import io
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from errors import RecordNotFound, RuleViolation

logger = logging.getLogger(__name__)

STATUS_CHOICES = ("all", "active", "inactive")

ExportColumn = Tuple[str, Callable[[Dict[str, Any]], Any]]


@dataclass(frozen=True)
class ListSchema:
    name: str
    label: str
    page_size: int
    # None searches every value of the record
    search_fields: Optional[Tuple[str, ...]] = ("name",)
    default_sort: Optional[str] = None
    default_descending: bool = False
    sort_aliases: Mapping[str, str] = field(default_factory=dict)
    filter_fields: Tuple[str, ...] = ()
    status_field: Optional[str] = None
    export_columns: Optional[Tuple[ExportColumn, ...]] = None


def get_nested(record: Any, dotted_key: str) -> Any:
    current = record
    for part in dotted_key.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def search_records(
    records: List[Dict[str, Any]],
    term: str,
    fields: Optional[Tuple[str, ...]],
) -> List[Dict[str, Any]]:
    """Case-insensitive substring match on any of ``fields``."""
    if not term:
        return list(records)
    needle = term.lower()

    def matches(record):
        values = record.values() if fields is None else (get_nested(record, f) for f in fields)
        return any(v is not None and needle in str(v).lower() for v in values)

    return [r for r in records if matches(r)]


def filter_records(
    records: List[Dict[str, Any]],
    filters: Optional[Dict[str, Any]] = None,
    status: str = "all",
    status_field: Optional[str] = None,
) -> List[Dict[str, Any]]:
    result = list(records)
    for key, value in (filters or {}).items():
        if value is None or value == "":
            continue
        result = [r for r in result if get_nested(r, key) == value]
    if status_field and status != "all":
        wanted = status == "active"
        result = [r for r in result if bool(r.get(status_field)) is wanted]
    return result


def sort_records(
    records: List[Dict[str, Any]],
    sort_field: Optional[str],
    descending: bool = False,
) -> List[Dict[str, Any]]:
    """Native ordering, missing values last; descending is the exact reverse."""
    if not sort_field:
        return list(records)
    present = [r for r in records if get_nested(r, sort_field) is not None]
    missing = [r for r in records if get_nested(r, sort_field) is None]
    try:
        present = sorted(present, key=lambda r: get_nested(r, sort_field))
    except TypeError:
        present = sorted(present, key=lambda r: str(get_nested(r, sort_field)))
    ordered = present + missing
    if descending:
        ordered.reverse()
    return ordered


def total_pages(count: int, page_size: int) -> int:
    return max(1, math.ceil(count / page_size))


def clamp_page(page: int, count: int, page_size: int) -> int:
    return min(max(1, page), total_pages(count, page_size))


def paginate(records: List[Dict[str, Any]], page: int, page_size: int) -> List[Dict[str, Any]]:
    page = clamp_page(page, len(records), page_size)
    start = (page - 1) * page_size
    return records[start:start + page_size]


def flatten_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(
            json.dumps(v, default=str) if isinstance(v, (dict, list)) else str(flatten_value(v))
            for v in value
        )
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return value


def export_csv(
    records: List[Dict[str, Any]],
    columns: Optional[Tuple[ExportColumn, ...]] = None,
) -> str:
    """One flat row per record; nested values collapse into a single cell."""
    if columns is None:
        keys: List[str] = []
        for record in records:
            for key in record:
                if key not in keys:
                    keys.append(key)
        columns = tuple((key, lambda r, k=key: r.get(k)) for key in keys)

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([header for header, _ in columns])
    for record in records:
        writer.writerow([flatten_value(getter(record)) for _, getter in columns])
    return buf.getvalue()


def toggle_status(service, record_id: str, field_name: str = "is_active") -> Dict[str, Any]:
    """Flip one boolean field remotely; the returned record reflects the stored value."""
    record = service.read(record_id)
    if record is None:
        raise RecordNotFound(f"{service.label} does not exist.")
    new_value = not bool(record.get(field_name))
    service.check_toggle(record, field_name, new_value)
    if not service.update(record_id, {field_name: new_value}):
        raise RecordNotFound(f"{service.label} does not exist.")
    record[field_name] = new_value
    return record


class ListView:
    """Searchable, sortable, paged view over one fetched collection."""

    def __init__(self, schema: ListSchema, records: List[Dict[str, Any]]):
        self.schema = schema
        self.records = list(records)
        self._search = ""
        self._status = "all"
        self._filters: Dict[str, Any] = {}
        self._page = 1
        self.sort_field = schema.default_sort
        self.descending = schema.default_descending

    @property
    def search(self) -> str:
        return self._search

    @search.setter
    def search(self, term: Optional[str]) -> None:
        self._search = term or ""
        self._page = 1

    @property
    def status(self) -> str:
        return self._status

    @status.setter
    def status(self, value: Optional[str]) -> None:
        value = value or "all"
        if value not in STATUS_CHOICES:
            raise RuleViolation(f"Unknown status filter: {value}")
        self._status = value
        self._page = 1

    def set_filter(self, name: str, value: Any) -> None:
        if name not in self.schema.filter_fields:
            raise RuleViolation(f"{self.schema.label} cannot be filtered by {name}")
        self._filters[name] = value
        self._page = 1

    def sort_by(self, sort_field: str, descending: Optional[bool] = None) -> None:
        """Choosing the current field again without a direction flips it."""
        sort_field = self.schema.sort_aliases.get(sort_field, sort_field)
        if descending is None:
            descending = not self.descending if sort_field == self.sort_field else False
        self.sort_field = sort_field
        self.descending = descending

    def filtered(self) -> List[Dict[str, Any]]:
        rows = search_records(self.records, self._search, self.schema.search_fields)
        return filter_records(rows, self._filters, self._status, self.schema.status_field)

    def rows(self) -> List[Dict[str, Any]]:
        return sort_records(self.filtered(), self.sort_field, self.descending)

    @property
    def total(self) -> int:
        return len(self.filtered())

    @property
    def pages(self) -> int:
        return total_pages(self.total, self.schema.page_size)

    @property
    def page(self) -> int:
        return clamp_page(self._page, self.total, self.schema.page_size)

    @page.setter
    def page(self, value: int) -> None:
        self._page = value

    def page_items(self) -> List[Dict[str, Any]]:
        return paginate(self.rows(), self.page, self.schema.page_size)

    def to_response(self) -> Dict[str, Any]:
        rows = self.rows()
        page = clamp_page(self._page, len(rows), self.schema.page_size)
        return {
            "items": paginate(rows, page, self.schema.page_size),
            "total": len(rows),
            "page": page,
            "pages": total_pages(len(rows), self.schema.page_size),
            "page_size": self.schema.page_size,
        }

    def export(self) -> str:
        rows = self.rows()
        if not rows:
            raise RuleViolation(f"No {self.schema.name} to export")
        return export_csv(rows, self.schema.export_columns)

    def export_filename(self, today: Optional[date] = None) -> str:
        today = today or date.today()
        return f"{self.schema.name}-{today.isoformat()}.csv"

    def patch(self, record_id: str, fields: Dict[str, Any]) -> bool:
        for record in self.records:
            if record.get("id") == record_id:
                record.update(fields)
                return True
        return False

    def remove(self, record_id: str) -> bool:
        before = len(self.records)
        self.records = [r for r in self.records if r.get("id") != record_id]
        return len(self.records) != before

    def toggle(self, service, record_id: str, field_name: Optional[str] = None) -> Dict[str, Any]:
        """Write first, then patch the one local record; a failure leaves it as it was."""
        field_name = field_name or self.schema.status_field or "is_active"
        updated = toggle_status(service, record_id, field_name)
        self.patch(record_id, {field_name: updated[field_name]})
        return updated


def _active_label(record: Dict[str, Any]) -> str:
    return "Active" if record.get("is_active") else "Inactive"


CATEGORY_LIST = ListSchema(
    name="categories",
    label="Category",
    page_size=6,
    search_fields=("name", "arabic_name"),
    default_sort="name",
    status_field="is_active",
    export_columns=(
        ("Name", lambda r: r.get("name")),
        ("Status", _active_label),
        ("ID", lambda r: r.get("id")),
    ),
)

PRODUCT_LIST = ListSchema(
    name="products",
    label="Product",
    page_size=5,
    search_fields=("name", "description"),
    default_sort="name",
    sort_aliases={"category": "category_name"},
    filter_fields=("category_id", "is_featured"),
    status_field="is_active",
    export_columns=(
        ("Name", lambda r: r.get("name")),
        ("Category", lambda r: r.get("category_name") or "-"),
        ("Status", _active_label),
        ("Variants", lambda r: len(r.get("variants") or [])),
        ("Description", lambda r: r.get("description")),
    ),
)

ORDER_LIST = ListSchema(
    name="orders",
    label="Order",
    page_size=7,
    search_fields=("id", "userId", "address.name"),
    default_sort="createdAt",
    default_descending=True,
    filter_fields=("status", "paymentMethod"),
)

USER_LIST = ListSchema(
    name="users",
    label="User",
    page_size=6,
    search_fields=("name", "email", "role", "signInMethod"),
    default_sort="name",
    filter_fields=("role", "signInMethod"),
)

BLOG_LIST = ListSchema(
    name="blogs",
    label="Blog post",
    page_size=5,
    search_fields=("name",),
    default_sort="createdAt",
    default_descending=True,
    filter_fields=("category",),
)

ENQUIRY_LIST = ListSchema(
    name="enquiries",
    label="Enquiry",
    page_size=7,
    search_fields=None,
    default_sort="timestamp",
    default_descending=True,
    filter_fields=("type",),
)
