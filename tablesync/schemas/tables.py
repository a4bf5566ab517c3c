"""Table, row and definition schemas exchanged with the server."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class SyncTag:
    """Server-assigned version stamps of one table.

    ``None`` means "never synced" and never equals a non-null tag.
    """

    data_etag: str | None = None
    schema_etag: str | None = None

    def with_data_etag(self, data_etag: str | None) -> SyncTag:
        return SyncTag(data_etag=data_etag, schema_etag=self.schema_etag)


class WireModel(BaseModel):
    """Base for wire entities: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class TableResource(WireModel):
    """The server's current view of one table."""

    table_id: str = Field(alias="tableId")
    data_etag: str | None = Field(default=None, alias="dataETag")
    schema_etag: str | None = Field(default=None, alias="schemaETag")
    self_uri: str | None = Field(default=None, alias="selfUri")
    definition_uri: str | None = Field(default=None, alias="definitionUri")
    data_uri: str = Field(alias="dataUri")
    diff_uri: str = Field(alias="diffUri")
    instance_files_uri: str | None = Field(default=None, alias="instanceFilesUri")
    acl_uri: str | None = Field(default=None, alias="aclUri")

    @property
    def sync_tag(self) -> SyncTag:
        return SyncTag(data_etag=self.data_etag, schema_etag=self.schema_etag)


class TableResourceList(WireModel):
    tables: list[TableResource] = Field(default_factory=list)


class Column(WireModel):
    """One column of a table definition. Element types are opaque strings."""

    element_key: str = Field(alias="elementKey")
    element_name: str = Field(alias="elementName")
    element_type: str | None = Field(default=None, alias="elementType")
    list_child_element_keys: str | None = Field(default=None, alias="listChildElementKeys")


class TableDefinition(WireModel):
    """Request body for creating a table."""

    table_id: str = Field(alias="tableId")
    schema_etag: str | None = Field(default=None, alias="schemaETag")
    columns: list[Column] = Field(default_factory=list, alias="orderedColumns")


class TableDefinitionResource(TableDefinition):
    self_uri: str | None = Field(default=None, alias="selfUri")
    table_uri: str | None = Field(default=None, alias="tableUri")


class Scope(WireModel):
    """Filter/visibility scope of a row."""

    type: str | None = None
    value: str | None = None


class ColumnValue(WireModel):
    column: str
    value: str | None = None


class Row(WireModel):
    """A row as sent to the server for insert-or-update."""

    row_id: str = Field(alias="rowId")
    row_etag: str | None = Field(default=None, alias="rowETag")
    deleted: bool = False
    form_id: str | None = Field(default=None, alias="formId")
    locale: str | None = None
    savepoint_type: str | None = Field(default=None, alias="savepointType")
    savepoint_timestamp: str | None = Field(default=None, alias="savepointTimestamp")
    savepoint_creator: str | None = Field(default=None, alias="savepointCreator")
    filter_scope: Scope = Field(default_factory=Scope, alias="filterScope")
    ordered_columns: list[ColumnValue] = Field(default_factory=list, alias="orderedColumns")

    @property
    def values(self) -> dict[str, str | None]:
        return {cv.column: cv.value for cv in self.ordered_columns}


class RowResource(Row):
    """A row as returned by the server, with its post-write table data tag."""

    self_uri: str | None = Field(default=None, alias="selfUri")
    data_etag_at_modification: str | None = Field(default=None, alias="dataETagAtModification")


class RowResourceList(WireModel):
    rows: list[RowResource] = Field(default_factory=list)


@dataclass(frozen=True)
class SyncRow:
    """One revision of an application row. A new instance represents each revision."""

    row_id: str
    row_etag: str | None = None
    deleted: bool = False
    form_id: str | None = None
    locale: str | None = None
    savepoint_type: str | None = None
    savepoint_timestamp: str | None = None
    savepoint_creator: str | None = None
    filter_scope: Scope = field(default_factory=Scope)
    values: Mapping[str, str | None] = field(default_factory=dict)

    @classmethod
    def from_resource(cls, row: Row) -> SyncRow:
        return cls(
            row_id=row.row_id,
            row_etag=row.row_etag,
            deleted=row.deleted,
            form_id=row.form_id,
            locale=row.locale,
            savepoint_type=row.savepoint_type,
            savepoint_timestamp=row.savepoint_timestamp,
            savepoint_creator=row.savepoint_creator,
            filter_scope=row.filter_scope,
            values=row.values,
        )

    def to_row(self) -> Row:
        return Row(
            row_id=self.row_id,
            row_etag=self.row_etag,
            deleted=self.deleted,
            form_id=self.form_id,
            locale=self.locale,
            savepoint_type=self.savepoint_type,
            savepoint_timestamp=self.savepoint_timestamp,
            savepoint_creator=self.savepoint_creator,
            filter_scope=self.filter_scope,
            ordered_columns=[
                ColumnValue(column=column, value=value) for column, value in self.values.items()
            ],
        )


@dataclass(frozen=True)
class RowModification:
    """A row's new identity after a mutation, plus the table tag the server reported."""

    row_id: str
    row_etag: str | None
    tag: SyncTag


@dataclass
class IncomingRowModifications:
    """Rows changed on the server since a caller-supplied tag."""

    tag: SyncTag
    rows: dict[str, SyncRow] = field(default_factory=dict)
