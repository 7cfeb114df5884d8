"""Tests for query execution and the fluent builder."""

import pytest

from jsonstore import JsonStore, Page, QueryBuilder, RecordCollection
from jsonstore.exceptions import (
    AggregationTypeError,
    CorruptStorageError,
    InvalidOperatorError,
    ModelNotFoundError,
    ValidationError,
)

from models import BlogPost, User


class TestRetrieval:
    """Test get/first/find."""

    def test_get_all(self, seeded_store):
        """Test an unfiltered query returns every record in file order."""
        users = seeded_store.query(User).get()
        assert isinstance(users, RecordCollection)
        assert [u.id for u in users] == [1, 2, 3, 4]
        assert all(isinstance(u, User) for u in users)

    def test_get_missing_entity(self, store):
        """Test querying an entity without a file."""
        assert store.query(User).get().is_empty()
        assert store.query(User).first() is None
        assert store.query(User).count() == 0

    def test_where_two_argument_form(self, seeded_store):
        """Test where(column, value) equals where(column, '=', value)."""
        assert seeded_store.query(User).where("id", 2).get().pluck("name") == ["Bob"]
        assert seeded_store.query(User).where("id", "=", 2).first().name == "Bob"

    def test_where_no_string_coercion(self, seeded_store):
        """Test numeric columns never match string values."""
        assert seeded_store.query(User).where("id", "2").get().is_empty()

    def test_where_chain_is_conjunction(self, seeded_store):
        """Test chained wheres all apply."""
        users = seeded_store.query(User).where("role", "admin").where("age", ">", 30).get()
        assert users.pluck("name") == ["Carol"]

    def test_unsupported_operator(self, seeded_store):
        """Test an unknown operator is rejected."""
        with pytest.raises(InvalidOperatorError):
            seeded_store.query(User).where("age", "~", 3)

    def test_where_in_and_not_in(self, seeded_store):
        """Test membership filters."""
        query = seeded_store.query(User)
        assert query.where_in("id", [1, 2]).order_by("id", "desc").get().pluck("id") == [2, 1]
        assert query.where_not_in("role", ["admin"]).get().pluck("id") == [2, 4]
        assert query.where_in("id", []).get().is_empty()

    def test_where_in_with_descending_order(self, store, write_entity):
        """Test whereIn composed with a descending orderBy."""
        write_entity("user", [{"id": 1, "v": "a"}, {"id": 2, "v": "b"}, {"id": 3, "v": "c"}])
        users = store.query(User).where_in("id", [2, 3]).order_by("id", "desc").get()
        assert users.to_list() == [{"id": 3, "v": "c"}, {"id": 2, "v": "b"}]

    def test_first(self, seeded_store):
        """Test first returns the first match or None."""
        assert seeded_store.query(User).order_by("age", "desc").first().name == "Carol"
        assert seeded_store.query(User).where("age", ">", 99).first() is None

    def test_find(self, seeded_store):
        """Test lookup by primary key."""
        assert seeded_store.query(User).find(3).name == "Carol"
        assert seeded_store.query(User).find(99) is None

    def test_find_many(self, seeded_store):
        """Test a list of ids returns a collection."""
        users = seeded_store.query(User).find([4, 1, 99])
        assert users.pluck("id") == [1, 4]

    def test_find_respects_clauses(self, seeded_store):
        """Test find combines with pending where clauses."""
        assert seeded_store.query(User).where("role", "admin").find(2) is None

    def test_find_or_fail(self, seeded_store):
        """Test strict lookups."""
        assert seeded_store.query(User).find_or_fail(1).name == "Alice"
        with pytest.raises(ModelNotFoundError) as exc_info:
            seeded_store.query(User).find_or_fail(99)
        assert exc_info.value.model == "User"
        assert exc_info.value.ids == 99

    def test_find_or_fail_many(self, seeded_store):
        """Test every requested id must exist."""
        assert seeded_store.query(User).find_or_fail([1, 2, 2]).count() == 2
        with pytest.raises(ModelNotFoundError):
            seeded_store.query(User).find_or_fail([1, 99])

    def test_corrupt_file_propagates(self, store, storage_root):
        """Test corrupt storage surfaces from queries."""
        (storage_root / "user.json").write_text("{oops", encoding="utf-8")
        with pytest.raises(CorruptStorageError):
            store.query(User).get()


class TestOrderingAndSelection:
    """Test orderBy and select."""

    def test_order_by(self, seeded_store):
        """Test ascending and descending order."""
        assert seeded_store.query(User).order_by("name").get().pluck("name") == [
            "Alice",
            "Bob",
            "Carol",
            "Dave",
        ]
        assert seeded_store.query(User).order_by_desc("age").get().pluck("id") == [3, 1, 2, 4]

    def test_order_by_is_stable(self, seeded_store):
        """Test ties keep file order."""
        assert seeded_store.query(User).where("age", 25).order_by("age", "desc").get().pluck(
            "id"
        ) == [2, 4]

    def test_last_order_by_wins(self, seeded_store):
        """Test each orderBy re-sorts the whole result."""
        users = seeded_store.query(User).order_by("age").order_by("name", "desc").get()
        assert users.pluck("name") == ["Dave", "Carol", "Bob", "Alice"]

    def test_invalid_direction(self, seeded_store):
        """Test direction validation."""
        with pytest.raises(ValidationError):
            seeded_store.query(User).order_by("age", "up")

    def test_select(self, seeded_store):
        """Test projection to selected columns."""
        users = seeded_store.query(User).select("id", "name").get()
        assert users[0].get_attributes() == {"id": 1, "name": "Alice"}

    def test_select_accumulates(self, seeded_store):
        """Test select and add_select form a union without duplicates."""
        user = seeded_store.query(User).select("id").add_select("name", "id").first()
        assert list(user.get_attributes()) == ["id", "name"]

    def test_select_star(self, seeded_store, people):
        """Test '*' keeps every column."""
        assert seeded_store.query(User).select("*").first().get_attributes() == people[0]

    def test_get_columns_replace_select(self, seeded_store):
        """Test get(columns) overrides earlier selects."""
        user = seeded_store.query(User).select("id").get(["name"])[0]
        assert user.get_attributes() == {"name": "Alice"}
        user = seeded_store.query(User).select("id").get(["*"])[0]
        assert user.get_attributes() == {"id": 1}

    def test_where_applies_before_select(self, seeded_store):
        """Test filters see columns the selection drops."""
        users = seeded_store.query(User).select("name").where("role", "editor").get()
        assert users.to_list() == [{"name": "Bob"}]


class TestAggregates:
    """Test count/min/max/avg/pluck/value/distinct."""

    def test_count(self, seeded_store):
        """Test counting matches."""
        assert seeded_store.query(User).count() == 4
        assert seeded_store.query(User).where("role", "admin").count() == 2

    def test_min_max_avg(self, seeded_store):
        """Test numeric aggregates over matches."""
        assert seeded_store.query(User).min("age") == 25
        assert seeded_store.query(User).max("age") == 35
        assert seeded_store.query(User).where("role", "admin").avg("age") == 32.5

    def test_aggregates_on_no_matches(self, seeded_store):
        """Test aggregates over an empty result."""
        assert seeded_store.query(User).where("age", ">", 99).max("age") is None

    def test_aggregate_type_errors(self, seeded_store):
        """Test non-numeric and absent columns raise."""
        with pytest.raises(AggregationTypeError):
            seeded_store.query(User).avg("name")
        with pytest.raises(AggregationTypeError):
            seeded_store.query(User).min("salary")

    def test_pluck(self, seeded_store):
        """Test plucking values and keyed values."""
        query = seeded_store.query(User).where("role", "admin")
        assert query.pluck("name") == ["Alice", "Carol"]
        assert query.pluck("name", "id") == {1: "Alice", 3: "Carol"}

    def test_value(self, seeded_store):
        """Test value returns the plucked sequence and first_value the scalar."""
        assert seeded_store.query(User).where("age", 25).value("name") == ["Bob", "Dave"]
        assert seeded_store.query(User).where("age", 25).first_value("name") == "Bob"
        assert seeded_store.query(User).where("age", 99).first_value("name") is None

    def test_distinct_and_group_by(self, seeded_store):
        """Test one record per distinct value, first seen wins."""
        assert seeded_store.query(User).distinct("age").pluck("id") == [1, 2, 3]
        assert seeded_store.query(User).group_by("role").pluck("name") == [
            "Alice",
            "Bob",
            "Dave",
        ]

    def test_chunk(self, seeded_store):
        """Test chunking hydrated results."""
        chunks = seeded_store.query(User).chunk(3)
        assert [c.pluck("id") for c in chunks] == [[1, 2, 3], [4]]
        assert isinstance(chunks[0][0], User)


class TestPagination:
    """Test paginate."""

    @pytest.fixture
    def numbered(self, store, write_entity):
        write_entity("user", [{"id": i, "even": i % 2 == 0} for i in range(1, 21)])
        return store

    def test_page_two_of_filtered(self, numbered):
        """Test page 2 of 10 filtered items holds offsets 5 to 9."""
        page = numbered.query(User).where("even", True).paginate(per_page=5, page=2)
        assert isinstance(page, Page)
        assert page.total == 10
        assert page.items.pluck("id") == [12, 14, 16, 18, 20]
        assert page.last_page == 2
        assert not page.has_more_pages
        assert not page.on_first_page

    def test_page_beyond_end(self, numbered):
        """Test an out-of-range page is empty but keeps the total."""
        page = numbered.query(User).paginate(per_page=5, page=9)
        assert page.items.is_empty()
        assert page.total == 20

    def test_default_page_size_from_config(self, numbered):
        """Test per_page falls back to the config value."""
        page = numbered.query(User).paginate()
        assert page.per_page == 15
        assert page.page == 1
        assert page.items.count() == 15
        assert page.has_more_pages

    def test_default_page_size_from_model(self, store, write_entity):
        """Test the model's per_page beats the config."""
        write_entity("articles", [{"id": i} for i in range(1, 8)])
        page = store.query(BlogPost).paginate()
        assert page.per_page == 3
        assert page.last_page == 3

    def test_page_resolver(self, storage_root, write_entity):
        """Test the current page comes from the injected resolver."""
        write_entity("user", [{"id": i} for i in range(1, 8)])
        requested = {"p": "3"}
        store = JsonStore({"storage_root": str(storage_root)}, page_resolver=requested.get)

        page = store.query(User).paginate(per_page=2, page_name="p")
        assert page.page == 3
        assert page.page_name == "p"
        assert page.items.pluck("id") == [5, 6]

        # Unresolvable values fall back to the first page
        assert store.query(User).paginate(per_page=2).page == 1

    def test_invalid_arguments(self, numbered):
        """Test non-positive page arguments are rejected."""
        with pytest.raises(ValidationError):
            numbered.query(User).paginate(per_page=-1)
        with pytest.raises(ValidationError):
            numbered.query(User).paginate(per_page=0)
        with pytest.raises(ValidationError):
            numbered.query(User).paginate(per_page=5, page=0)

    def test_to_dict(self, numbered):
        """Test the page dictionary."""
        data = numbered.query(User).select("id").paginate(per_page=2, page=1).to_dict()
        assert data["items"] == [{"id": 1}, {"id": 2}]
        assert data["last_page"] == 10
        assert data["total"] == 20


class TestBuilderIsolation:
    """Test builder copy-on-chain and consumption."""

    def test_chaining_copies(self, seeded_store):
        """Test a shared base query is not polluted by derived queries."""
        base = seeded_store.query(User).where("role", "admin")
        older = base.where("age", ">", 30)
        assert isinstance(older, QueryBuilder)
        assert older is not base
        assert older.count() == 1
        assert base.count() == 2

    def test_terminal_consumes_clauses(self, seeded_store):
        """Test a builder is reset after a terminal call."""
        query = seeded_store.query(User).where("role", "admin")
        assert query.count() == 2
        assert query.clauses.is_empty()
        assert query.count() == 4

    def test_terminal_resets_even_on_error(self, seeded_store):
        """Test a failing terminal still discards the clauses."""
        query = seeded_store.query(User).where("role", "admin")
        with pytest.raises(AggregationTypeError):
            query.avg("name")
        assert query.clauses.is_empty()

    def test_reads_see_latest_file(self, seeded_store, write_entity):
        """Test every query reloads the file."""
        query = seeded_store.query(User)
        assert query.count() == 4
        write_entity("user", [{"id": 1}])
        assert query.count() == 1

    def test_model_query_entry_points(self, seeded_store):
        """Test Model.query and Model.all."""
        assert User.query(seeded_store).where("id", 1).first().name == "Alice"
        assert User.all(seeded_store, ["id"]).to_list()[3] == {"id": 4}

    def test_hydrated_models_are_bound(self, seeded_store):
        """Test query results can be saved without explicit binding."""
        user = seeded_store.query(User).find(1)
        assert user.store is seeded_store
