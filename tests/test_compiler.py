"""Tests for SDL generation."""

import pytest
from graphql import build_schema

from db2graphql.adapters import PostgreSQL
from db2graphql.gql.compiler import Compiler


async def make_compiler(db) -> Compiler:
    adapter = PostgreSQL(db)
    await adapter.get_schema("public")
    return Compiler(adapter)


ROOT_ARGS = "(filter: String, pagination: String, where: Condition, _debug: Boolean, _cache: Boolean)"


class TestGeneratedSchema:

    @pytest.mark.asyncio
    async def test_foo_bar_schema(self, foo_bar_db):
        compiler = await make_compiler(foo_bar_db)
        sdl = compiler.get_sdl()

        assert "type Bar {\n  foo: Int\n  bar: Int\n  bar_foo: Foo\n}" in sdl
        assert f"type Foo {{\n  bar{ROOT_ARGS}: PageBar\n}}" in sdl
        assert "type PageFoo {\n  total: Int\n  tablename: String\n  items: [Foo]\n}" in sdl
        assert f"  getPageFoo{ROOT_ARGS}: PageFoo" in sdl
        assert f"  getFirstBar{ROOT_ARGS}: Bar" in sdl
        assert "  putItemFoo(_debug: Boolean, input: InputFoo!): Foo" in sdl
        assert "input InputBar {\n  foo: Int\n  bar: Int\n}" in sdl
        assert sdl.endswith("input Condition {\n  sql: String!\n  val: [String!]!\n}\n")
        build_schema(sdl)

    @pytest.mark.asyncio
    async def test_unmappable_columns_are_dropped(self, blog_db):
        compiled = (await make_compiler(blog_db)).build_schema()
        assert "avatar" not in compiled.types["Users"]
        assert "avatar" not in compiled.inputs["InputUsers"]
        assert list(compiled.types["Users"]) == ["id", "name", "posts", "posts_editor_id"]

    @pytest.mark.asyncio
    async def test_table_without_primary_key_is_read_only(self, blog_db):
        compiled = (await make_compiler(blog_db)).build_schema()
        assert "getPageAuditLog" in compiled.types["Query"]
        assert "getFirstAuditLog" not in compiled.types["Query"]
        assert "putItemAuditLog" not in compiled.types["Mutation"]
        assert "InputAuditLog" not in compiled.inputs

    @pytest.mark.asyncio
    async def test_blog_schema_is_valid_graphql(self, blog_db):
        schema = build_schema((await make_compiler(blog_db)).get_sdl())
        posts = schema.type_map["Posts"].fields
        assert str(posts["author_id_users"].type) == "Users"
        assert str(posts["comments"].type) == "PageComments"
        assert set(posts["comments"].args) == {"filter", "pagination", "where", "_debug", "_cache"}


class TestManualAdditions:

    @pytest.mark.asyncio
    async def test_generated_before_manual(self, foo_bar_db):
        compiler = await make_compiler(foo_bar_db)
        compiler.add_type("Greeting", {"text": "String"})
        compiler.add_query("hello", "Greeting", {"name": "String"})
        compiler.add_mutation("ping", "Boolean")
        compiler.add_input("InputGreeting", "text", "String!")

        compiled = compiler.build_schema()
        assert list(compiled.types) == ["Bar", "PageBar", "Foo", "PageFoo", "Greeting", "Query", "Mutation"]
        assert list(compiled.types["Query"])[-1] == "hello"
        assert list(compiled.types["Mutation"])[-1] == "ping"
        assert list(compiled.inputs) == ["InputBar", "InputFoo", "InputGreeting", "Condition"]
        build_schema(compiler.get_sdl())

    def test_without_database(self):
        compiler = Compiler(None)
        compiler.add("Query", "hello", "String")
        compiler.add("Query", "items", ["String"])
        sdl = compiler.get_sdl(with_database=False)
        assert "type Query {\n  hello: String\n  items: [String]\n}" in sdl
        assert "input Condition" in sdl

    def test_empty_compiler_renders_nothing(self):
        assert Compiler(None).get_sdl(with_database=False) == ""

    @pytest.mark.asyncio
    async def test_sdl_is_memoised_until_refresh_or_addition(self, foo_bar_db):
        compiler = await make_compiler(foo_bar_db)
        first = compiler.get_sdl()
        assert compiler.get_sdl() is first

        compiler.graph.tables.pop("bar")
        assert compiler.get_sdl() is first
        assert "type Bar" not in compiler.get_sdl(refresh=True)

        compiler.add_query("hello", "String")
        assert "hello: String" in compiler.get_sdl()

    @pytest.mark.asyncio
    async def test_build_is_idempotent(self, blog_db):
        compiler = await make_compiler(blog_db)
        assert compiler.build_schema() == compiler.build_schema()
        assert compiler.get_sdl(refresh=True) == compiler.get_sdl(refresh=True)
