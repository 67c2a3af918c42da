"""Tests for the CRUD operations."""

from dataclasses import dataclass
from unittest.mock import Mock

import pytest

from crudql.execution.context import ResolveParams
from crudql.execution.handle import DatabaseHandle, ExecResult, Rows
from crudql.execution.operations import (
    create_model,
    delete_model,
    find_all_model,
    find_by_id,
    query_model,
    query_model_count,
    raw_insert_model,
    update_model,
    where_model,
)
from crudql.exceptions import (
    EmptyProjectionError,
    InvalidFieldError,
    MissingArgumentError,
    NoRowsFoundError,
    ProjectionConfigError,
    QueryExecutionError,
    ValidationError,
    ZeroRowsAffectedError,
)
from .test_database import Gadget, Part, Widget, create_test_database, make_info


def empty_rows():
    cursor = Mock()
    cursor.fetchone.return_value = None
    return Rows(cursor)


class TestStatementsIssued:
    """Test the statements operations hand to the database."""

    @pytest.fixture
    def handle(self):
        """Create a handle double."""
        handle = Mock(spec=DatabaseHandle)
        handle.exec.return_value = ExecResult(rows_affected=1, last_insert_id=42)
        handle.query.return_value = empty_rows()
        return handle

    def test_create_statement_and_id(self, handle):
        """Test create issues the insert and sets the reported id."""
        widget = create_model(Part, "widgets", None, {"Name": "a"}, handle)

        handle.exec.assert_called_once_with("INSERT INTO widgets (Name) VALUES (?);", ["a"])
        assert widget.Id == 42
        assert widget.Name == "a"

    def test_create_from_record_skips_unset_fields(self, handle):
        """Test that None fields of a record payload are not inserted."""
        gadget = create_model(Gadget, "gadgets", None, Gadget(Name="a"), handle)

        handle.exec.assert_called_once_with("INSERT INTO gadgets (Name) VALUES (?);", ["a"])
        assert gadget == Gadget(Id=42, Name="a")

    def test_create_zero_rows(self, handle):
        """Test create fails when nothing was inserted."""
        handle.exec.return_value = ExecResult(rows_affected=0)

        with pytest.raises(ZeroRowsAffectedError) as exc_info:
            create_model(Part, "widgets", None, {"Name": "a"}, handle)

        assert exc_info.value.message == "failed to create model"

    def test_create_empty_payload(self, handle):
        """Test an empty payload is rejected before execution."""
        with pytest.raises(ValidationError):
            create_model(Gadget, "gadgets", None, Gadget(), handle)

        handle.exec.assert_not_called()

    def test_create_unknown_field(self, handle):
        """Test payload keys must name fields of the record."""
        with pytest.raises(InvalidFieldError):
            create_model(Part, "widgets", None, {"Weight": 3}, handle)

        handle.exec.assert_not_called()

    def test_create_unbindable_value(self, handle):
        """Test payload values must be bindable scalars."""
        with pytest.raises(ValidationError) as exc_info:
            create_model(Part, "widgets", None, {"Name": ["a", "b"]}, handle)

        assert exc_info.value.context["field"] == "Name"
        handle.exec.assert_not_called()

    def test_list_pagination(self, handle):
        """Test page and pageSize become LIMIT and OFFSET."""
        info = make_info("{ widgets { id name } }", "widgets")
        params = ResolveParams.from_info(info, page=2, pageSize=5)

        assert query_model(Part, "widgets", params, handle) == []

        sql, args = handle.query.call_args[0]
        assert "LIMIT 5 OFFSET 5" in sql
        assert sql.startswith("SELECT id,name FROM widgets WHERE 1 = 1 ORDER BY id DESC")
        assert args == []

    def test_list_defaults(self, handle):
        """Test the first page of ten is the default."""
        info = make_info("{ widgets { id } }", "widgets")

        query_model(Part, "widgets", ResolveParams.from_info(info), handle)

        assert handle.query.call_args[0][0].endswith("LIMIT 10 OFFSET 0;")

    def test_list_filter_is_bound(self, handle):
        """Test where entries become bound predicate terms."""
        info = make_info("{ widgets { id } }", "widgets")
        params = ResolveParams.from_info(info, where={"name": "gear"})

        query_model(Part, "widgets", params, handle)

        sql, args = handle.query.call_args[0]
        assert "WHERE name = ? ORDER BY" in sql
        assert args == ["gear"]

    @pytest.mark.parametrize("args", [{"page": 0}, {"pageSize": -1}])
    def test_list_rejects_non_positive_paging(self, handle, args):
        """Test page and pageSize below one are rejected."""
        info = make_info("{ widgets { id } }", "widgets")

        with pytest.raises(ValidationError):
            query_model(Part, "widgets", ResolveParams.from_info(info, **args), handle)

        handle.query.assert_not_called()

    def test_delete_missing_id(self, handle):
        """Test delete without an id fails before any statement runs."""
        with pytest.raises(MissingArgumentError) as exc_info:
            delete_model(Part, "widgets", ResolveParams(), handle)

        assert exc_info.value.message == "id is required"
        handle.exec.assert_not_called()

    @pytest.mark.parametrize("bad_id", [None, True, 1.5, ""])
    def test_find_by_id_rejects_bad_id(self, handle, bad_id):
        """Test ids must be integers or non-empty strings."""
        info = make_info("{ widget { id } }", "widget")

        with pytest.raises(MissingArgumentError):
            find_by_id(Part, "widgets", ResolveParams.from_info(info, id=bad_id), handle)

        handle.query_row.assert_not_called()

    def test_update_excludes_id(self, handle):
        """Test update never writes the id column."""
        handle.query_row.return_value = (7, "b")
        info = make_info("{ updatePart { id name } }", "updatePart")
        params = ResolveParams.from_info(info, id=7)

        part = update_model(Part, "parts", params, {"Id": 99, "Name": "b"}, handle)

        handle.exec.assert_called_once_with("UPDATE parts SET Name = ? WHERE id = ?;", ["b", 7])
        assert part == Part(Id=7, Name="b")

    def test_unsafe_table_name(self, handle):
        """Test table names are validated before interpolation."""
        with pytest.raises(ValidationError):
            raw_insert_model("parts; --", {"name": "x"}, handle)

        handle.exec.assert_not_called()

    def test_raw_insert_rejects_bad_keys(self, handle):
        """Test raw insert keys must be identifiers."""
        with pytest.raises(ValidationError):
            raw_insert_model("parts", {"name) VALUES ('x'); --": "x"}, handle)

        handle.exec.assert_not_called()

    def test_find_all_default_columns(self, handle):
        """Test find_all without columns selects every exported field in order."""
        @dataclass
        class Ledger:
            Id: int = 0
            Name: str = ""
            _cache: str = ""

        assert find_all_model(Ledger, "ledgers", None, None, handle) == []

        sql, args = handle.query.call_args[0]
        assert sql == "SELECT Id,Name FROM ledgers WHERE 1 = 1;"
        assert args == []

    def test_unexpected_error_is_wrapped(self, handle):
        """Test driver errors are re-raised as query errors."""
        handle.query_row.side_effect = RuntimeError("socket closed")

        with pytest.raises(QueryExecutionError) as exc_info:
            query_model_count("parts", None, handle)

        assert exc_info.value.context["operation"] == "count"


class TestOperationsOnDuckDB:
    """Test the operations end to end against an in-memory DuckDB."""

    @pytest.fixture
    def db(self):
        """Create a seeded test database."""
        conn = create_test_database()
        yield conn
        conn.close()

    def params(self, query, path_key, **args):
        return ResolveParams.from_info(make_info(query, path_key), **args)

    def test_list_newest_first(self, db):
        """Test list returns records by descending id."""
        params = self.params("{ widgets { id name } }", "widgets", pageSize=3)

        widgets = query_model(Widget, "widgets", params, db)

        assert [w.id for w in widgets] == [12, 11, 10]
        assert [w.name for w in widgets] == ["clamp", "rivet", "nut"]
        # Unselected fields keep their zero values
        assert all(w.stock == 0 for w in widgets)

    def test_list_second_page(self, db):
        """Test pagination skips earlier pages."""
        params = self.params("{ widgets { id } }", "widgets", page=2, pageSize=5)

        widgets = query_model(Widget, "widgets", params, db)

        assert [w.id for w in widgets] == [7, 6, 5, 4, 3]

    def test_list_with_filter(self, db):
        """Test the where argument narrows results."""
        params = self.params("{ widgets { name color } }", "widgets", where={"color": "green"})

        widgets = query_model(Widget, "widgets", params, db)

        assert [w.name for w in widgets] == ["nut", "spring", "flange"]
        assert {w.color for w in widgets} == {"green"}

    def test_list_filter_on_unknown_field(self, db):
        """Test filter keys must name fields of the record."""
        params = self.params("{ widgets { id } }", "widgets", where={"weight": 3})

        with pytest.raises(InvalidFieldError):
            query_model(Widget, "widgets", params, db)

    def test_list_selecting_unknown_field(self, db):
        """Test selected fields must exist on the record."""
        params = self.params("{ widgets { id weight } }", "widgets")

        with pytest.raises(InvalidFieldError) as exc_info:
            query_model(Widget, "widgets", params, db)

        assert exc_info.value.message == "invalid field name: Weight"

    def test_find_by_id(self, db):
        """Test fetching a single record."""
        params = self.params("{ widget { id name price } }", "widget", id=4)

        widget = find_by_id(Widget, "widgets", params, db)

        assert widget.id == 4
        assert widget.name == "flange"
        assert widget.price == pytest.approx(9.99)

    def test_find_by_missing_id(self, db):
        """Test a missing row is reported."""
        params = self.params("{ widget { id } }", "widget", id=404)

        with pytest.raises(NoRowsFoundError) as exc_info:
            find_by_id(Widget, "widgets", params, db)

        assert exc_info.value.message == "no data found"

    def test_count(self, db):
        """Test counting rows."""
        assert query_model_count("widgets", None, db) == 12

    def test_create_then_find(self, db):
        """Test a created record gets the generated id."""
        widget = create_model(Widget, "widgets", None, {"name": "pin", "stock": 9}, db)

        assert widget.id == 13
        assert widget.name == "pin"
        assert widget.stock == 9

        params = self.params("{ widget { name stock } }", "widget", id=widget.id)
        stored = find_by_id(Widget, "widgets", params, db)
        assert (stored.name, stored.stock) == ("pin", 9)

    def test_update(self, db):
        """Test update writes the payload and returns the stored record."""
        params = self.params("{ updateWidget { id name color } }", "updateWidget", id=1)

        widget = update_model(Widget, "widgets", params, {"color": "black"}, db)

        assert (widget.id, widget.name, widget.color) == (1, "sprocket", "black")

    def test_update_missing_row(self, db):
        """Test update reports a record it cannot read back."""
        params = self.params("{ updateWidget { id } }", "updateWidget", id=404)

        with pytest.raises(NoRowsFoundError) as exc_info:
            update_model(Widget, "widgets", params, {"color": "black"}, db)

        assert exc_info.value.message == "failed to retrieve updated model"

    def test_update_without_selection_is_unrecoverable(self, db):
        """Test the projection error is not turned into a CrudQL error."""
        params = self.params("{ updateWidget }", "updateWidget", id=1)

        with pytest.raises(ProjectionConfigError):
            update_model(Widget, "widgets", params, {"color": "black"}, db)

    def test_delete(self, db):
        """Test delete reports the rows removed."""
        params = ResolveParams.from_info(None, id=3)

        assert delete_model(Widget, "widgets", params, db) == 1
        assert delete_model(Widget, "widgets", params, db) == 0
        assert query_model_count("widgets", None, db) == 11

    def test_where(self, db):
        """Test the unpaginated filter operation."""
        params = self.params("{ redWidgets { name } }", "redWidgets")

        widgets = where_model(Widget, "widgets", params, {"color": "red", "stock": 7}, db)

        assert [w.name for w in widgets] == ["cog"]

    def test_where_without_filter(self, db):
        """Test an empty filter matches every row."""
        params = self.params("{ all { id } }", "all")

        assert len(where_model(Widget, "widgets", params, None, db)) == 12

    def test_raw_insert(self, db):
        """Test raw insert returns the generated id."""
        new_id = raw_insert_model("parts", {"name": "axle"}, db)

        assert new_id == 1
        assert db.execute("SELECT name FROM parts WHERE id = ?", [new_id]).fetchone() == ("axle",)

    def test_raw_insert_empty(self, db):
        """Test raw insert needs at least one field."""
        with pytest.raises(ValidationError):
            raw_insert_model("parts", {}, db)

    def test_find_all_explicit_columns(self, db):
        """Test find_all with an explicit projection."""
        widgets = find_all_model(Widget, "widgets", {"color": "blue"}, ["id", "stock"], db)

        assert [(w.id, w.stock) for w in widgets] == [(2, 0), (5, 12), (8, 500), (11, 1000)]
        assert all(w.name == "" for w in widgets)

    def test_find_all_every_field(self, db):
        """Test find_all selects all exported fields by default."""
        widgets = find_all_model(Widget, "widgets", {"name": "gear"}, None, db)

        assert len(widgets) == 1
        assert widgets[0] == Widget(id=2, name="gear", color="blue", price=4.0, stock=0)

    def test_find_all_upper_cased_record(self, db):
        """Test column names bridge to upper-cased record fields."""
        raw_insert_model("parts", {"name": "axle"}, db)

        assert find_all_model(Part, "parts", {}, ["id", "name"], db) == [Part(Id=1, Name="axle")]

    def test_find_all_empty_projection(self, db):
        """Test an empty column list is rejected."""
        with pytest.raises(EmptyProjectionError):
            find_all_model(Widget, "widgets", {}, [], db)

    def test_missing_table(self, db):
        """Test driver errors surface as query errors."""
        with pytest.raises(QueryExecutionError) as exc_info:
            query_model_count("gadgets", None, db)

        assert exc_info.value.context["missing_table"] == "gadgets"
        assert exc_info.value.context["operation"] == "count"
