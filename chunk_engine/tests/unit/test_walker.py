"""Unit tests for chunk_engine.parser.walker."""

from __future__ import annotations

import logging

import pytest
from chunk_engine.models.chunk import Position, ReferenceKind, StatementType
from chunk_engine.parser.lexer import tokenize
from chunk_engine.parser.segmenter import segment
from chunk_engine.parser.walker import WalkResult, classify_cte_statement, walk


def _walk(sql: str, **kwargs) -> WalkResult:
    segments = segment(tokenize(sql))
    assert len(segments) == 1, [" ".join(t.text for t in s.tokens) for s in segments]
    return walk(segments[0].tokens, **kwargs)


def _names(result_or_node) -> list[str]:
    return [t.name for t in result_or_node.tables]


# ---------------------------------------------------------------------------
# Statement type
# ---------------------------------------------------------------------------


class TestStatementType:
    @pytest.mark.parametrize(
        ("sql", "expected"),
        [
            ("SELECT 1", StatementType.SELECT),
            ("select 1", StatementType.SELECT),
            ("INSERT INTO t VALUES (1)", StatementType.INSERT),
            ("UPDATE t SET a = 1", StatementType.UPDATE),
            ("DELETE FROM t", StatementType.DELETE),
            ("DECLARE @x INT", StatementType.DECLARE),
            ("SET @x = 1", StatementType.SET),
            ("EXECUTE dbo.p", StatementType.EXEC),
            ("TRUNCATE TABLE t", StatementType.TRUNCATE),
            ("PRINT 'hi'", StatementType.PRINT),
            ("USE master", StatementType.USE),
            ("foo bar baz", StatementType.OTHER),
        ],
    )
    def test_leading_keyword(self, sql, expected):
        assert _walk(sql).statement_type is expected

    def test_empty_token_range(self):
        assert walk([]).statement_type is StatementType.OTHER

    def test_cte_select_reports_main_statement(self):
        assert _walk("WITH c AS (SELECT 1 AS n) SELECT n FROM c").statement_type is StatementType.SELECT

    def test_cte_insert_reports_main_statement(self):
        sql = "WITH c AS (SELECT 1 AS n) INSERT INTO t SELECT n FROM c"
        assert _walk(sql).statement_type is StatementType.INSERT

    def test_cte_without_main_statement_stays_with(self):
        assert _walk("WITH c AS (SELECT 1 AS n)").statement_type is StatementType.WITH


class TestClassifyCteStatement:
    def test_main_keywords(self):
        assert classify_cte_statement("SELECT") is StatementType.SELECT
        assert classify_cte_statement("MERGE") is StatementType.MERGE

    def test_missing_or_unexpected_main(self):
        assert classify_cte_statement(None) is StatementType.WITH
        assert classify_cte_statement("DECLARE") is StatementType.WITH


# ---------------------------------------------------------------------------
# Table references
# ---------------------------------------------------------------------------


class TestTableReferences:
    def test_join_with_aliases(self):
        result = _walk("SELECT * FROM Employees e JOIN Departments d ON e.DepartmentID = d.DepartmentID")
        assert [(t.name, t.alias) for t in result.tables] == [("Employees", "e"), ("Departments", "d")]

    def test_alias_with_as(self):
        assert _walk("SELECT * FROM Employees AS emp").tables[0].alias == "emp"

    def test_no_alias_before_clause_keyword(self):
        assert _walk("SELECT * FROM Employees WHERE Id = 1").tables[0].alias is None

    def test_reserved_word_alias_in_brackets(self):
        assert _walk("SELECT * FROM Employees AS [select]").tables[0].alias == "select"

    def test_alias_keeps_case(self):
        assert _walk("SELECT * FROM Employees EmP").tables[0].alias == "EmP"

    def test_two_part_name(self):
        ref = _walk("SELECT * FROM dbo.Employees").tables[0]
        assert (ref.schema, ref.name, ref.database) == ("dbo", "Employees", None)

    def test_three_part_name(self):
        ref = _walk("SELECT * FROM Sales.dbo.Orders o").tables[0]
        assert (ref.database, ref.schema, ref.name, ref.alias) == ("Sales", "dbo", "Orders", "o")

    def test_four_part_name(self):
        ref = _walk("SELECT * FROM srv.Sales.dbo.Orders").tables[0]
        assert ref.server == "srv"
        assert ref.qualified_name == "srv.Sales.dbo.Orders"

    def test_skipped_schema(self):
        ref = _walk("SELECT * FROM Sales..Orders").tables[0]
        assert (ref.database, ref.schema, ref.name) == ("Sales", None, "Orders")

    def test_bracketed_parts(self):
        ref = _walk("SELECT * FROM [dbo].[Order Details] AS [od]").tables[0]
        assert (ref.schema, ref.name, ref.alias) == ("dbo", "Order Details", "od")

    def test_comma_separated_sources(self):
        result = _walk("SELECT * FROM a x, b, c z")
        assert [(t.name, t.alias) for t in result.tables] == [("a", "x"), ("b", None), ("c", "z")]

    @pytest.mark.parametrize(
        "join",
        ["JOIN", "INNER JOIN", "LEFT JOIN", "LEFT OUTER JOIN", "RIGHT JOIN", "FULL OUTER JOIN", "CROSS JOIN"],
    )
    def test_join_variants(self, join):
        assert _names(_walk(f"SELECT * FROM a {join} b ON 1 = 1")) == ["a", "b"]

    def test_table_hints_are_skipped(self):
        result = _walk("SELECT * FROM Employees e WITH (NOLOCK) JOIN Departments d WITH (NOLOCK, INDEX(ix)) ON 1 = 1")
        assert [(t.name, t.alias) for t in result.tables] == [("Employees", "e"), ("Departments", "d")]

    def test_old_style_hint(self):
        result = _walk("SELECT * FROM Employees (NOLOCK) WHERE 1 = 1")
        assert [(t.name, t.alias) for t in result.tables] == [("Employees", None)]

    def test_reference_position(self):
        ref = _walk("SELECT *\nFROM  Employees").tables[0]
        assert ref.position == Position(line=2, col=7)

    def test_is_distinct_from_is_not_a_table_source(self):
        assert _names(_walk("SELECT * FROM t WHERE a IS DISTINCT FROM b")) == ["t"]


# ---------------------------------------------------------------------------
# Reference kinds
# ---------------------------------------------------------------------------


class TestReferenceKinds:
    def test_temp_global_temp_and_table_variable(self):
        result = _walk("SELECT * FROM #tmp t JOIN ##shared g ON 1 = 1 JOIN @rows v ON 1 = 1")
        tmp, shared, rows = result.tables
        assert tmp.is_temp and not tmp.is_global_temp
        assert shared.is_temp and shared.is_global_temp
        assert rows.is_table_variable and not rows.is_temp
        assert [t.kind for t in result.tables] == [
            ReferenceKind.TEMP_TABLE,
            ReferenceKind.GLOBAL_TEMP_TABLE,
            ReferenceKind.TABLE_VARIABLE,
        ]

    def test_table_variable_is_not_a_parameter(self):
        assert _walk("SELECT * FROM @rows r WHERE r.Id = @Id").parameters[0].full_name == "@Id"
        assert len(_walk("SELECT * FROM @rows r WHERE r.Id = @Id").parameters) == 1

    def test_permanent_table_kind(self):
        assert _walk("SELECT * FROM t").tables[0].kind is ReferenceKind.TABLE

    def test_flags_are_mutually_exclusive(self):
        result = _walk("WITH c AS (SELECT 1 AS n) SELECT * FROM c JOIN #t ON 1 = 1 JOIN @v ON 1 = 1 JOIN x ON 1 = 1")
        for ref in result.tables:
            assert sum([ref.is_temp, ref.is_table_variable, ref.is_cte]) <= 1

    def test_enclosing_cte_names(self):
        tokens = segment(tokenize("SELECT * FROM Totals"))[0].tokens
        assert walk(tokens, ["totals"]).tables[0].is_cte
        assert not walk(tokens).tables[0].is_cte


# ---------------------------------------------------------------------------
# DML targets
# ---------------------------------------------------------------------------


class TestDmlTargets:
    def test_insert_select_target_then_source(self):
        result = _walk("INSERT INTO dbo.Archive (Id, [Name]) SELECT Id, Name FROM dbo.Employees")
        assert _names(result) == ["Archive", "Employees"]
        assert result.insert_columns == ["Id", "Name"]

    def test_insert_without_into(self):
        assert _names(_walk("INSERT #t VALUES (1)")) == ["#t"]

    def test_select_into_temp(self):
        result = _walk("SELECT * INTO #tmp FROM Employees")
        assert result.temp_table_name == "#tmp"
        assert _names(result) == ["Employees"]

    def test_select_into_permanent_table(self):
        assert _walk("SELECT * INTO dbo.Backup FROM Employees").temp_table_name == "dbo.Backup"

    def test_update_plain_target(self):
        result = _walk("UPDATE dbo.Employees SET Salary = @v WHERE Id = 1")
        assert [(t.schema, t.name) for t in result.tables] == [("dbo", "Employees")]
        assert [p.full_name for p in result.parameters] == ["@v"]

    def test_update_alias_target_is_not_duplicated(self):
        sql = "UPDATE e SET e.Salary = 1 FROM Employees e JOIN Departments d ON e.DeptId = d.Id"
        assert _names(_walk(sql)) == ["Employees", "Departments"]

    def test_update_target_listed_first(self):
        assert _names(_walk("UPDATE t SET a = s.a FROM s WHERE t.id = s.id")) == ["t", "s"]

    def test_delete_from(self):
        assert _names(_walk("DELETE FROM Employees WHERE Id = 1")) == ["Employees"]

    def test_delete_alias_target(self):
        assert _names(_walk("DELETE e FROM Employees e WHERE e.Id = 1")) == ["Employees"]

    def test_delete_top(self):
        assert _names(_walk("DELETE TOP (10) FROM t")) == ["t"]

    def test_merge_target_and_source(self):
        sql = (
            "MERGE INTO dbo.Target AS t USING dbo.Source AS s ON t.id = s.id "
            "WHEN MATCHED THEN UPDATE SET t.v = s.v "
            "WHEN NOT MATCHED THEN INSERT (id, v) VALUES (s.id, s.v);"
        )
        result = _walk(sql)
        assert [(t.name, t.alias) for t in result.tables] == [("Target", "t"), ("Source", "s")]
        assert result.statement_type is StatementType.MERGE

    def test_merge_using_derived_table(self):
        result = _walk("MERGE t USING (SELECT * FROM s) AS src ON t.id = src.id WHEN MATCHED THEN DELETE;")
        assert _names(result) == ["t"]
        assert result.subqueries[0].alias == "src"
        assert _names(result.subqueries[0]) == ["s"]

    def test_truncate(self):
        assert _names(_walk("TRUNCATE TABLE dbo.Staging")) == ["Staging"]

    def test_output_into_target_is_skipped(self):
        result = _walk("DELETE FROM t OUTPUT deleted.Id INTO @log WHERE Id = 1")
        assert _names(result) == ["t"]
        assert result.parameters == []


# ---------------------------------------------------------------------------
# DDL and EXEC
# ---------------------------------------------------------------------------


class TestDdlAndExec:
    def test_create_temp_table(self):
        result = _walk("CREATE TABLE #stage (Id INT, Name NVARCHAR(50))")
        assert result.temp_table_name == "#stage"
        assert result.ddl_object.object_type == "TABLE"
        assert result.ddl_object.name == "#stage"
        assert _names(result) == ["#stage"]

    def test_create_procedure(self):
        result = _walk("CREATE OR ALTER PROCEDURE dbo.usp_Load")
        assert result.ddl_object.object_type == "PROCEDURE"
        assert (result.ddl_object.schema, result.ddl_object.name) == ("dbo", "usp_Load")
        assert result.tables == []

    def test_drop_table_list(self):
        result = _walk("DROP TABLE IF EXISTS a, dbo.b")
        assert _names(result) == ["a", "b"]
        assert result.ddl_object.name == "a"

    def test_create_index_on_table(self):
        result = _walk("CREATE NONCLUSTERED INDEX ix_name ON dbo.Employees (Name)")
        assert result.ddl_object.object_type == "INDEX"
        assert _names(result) == ["Employees"]

    def test_exec_procedure(self):
        result = _walk("EXEC dbo.usp_GetEmployees @DeptId = 5")
        assert result.exec_procedure.name == "usp_GetEmployees"
        assert result.exec_procedure.schema == "dbo"
        assert [p.full_name for p in result.parameters] == ["@DeptId"]

    def test_exec_with_return_code(self):
        result = _walk("EXEC @rc = dbo.usp_Load")
        assert result.exec_procedure.name == "usp_Load"
        assert [p.full_name for p in result.parameters] == ["@rc"]

    def test_exec_dynamic_sql(self):
        result = _walk("EXEC (@sql)")
        assert result.exec_procedure is None
        assert [p.full_name for p in result.parameters] == ["@sql"]

    def test_insert_exec(self):
        result = _walk("INSERT INTO t EXEC dbo.load_t")
        assert _names(result) == ["t"]
        assert result.exec_procedure.qualified_name == "dbo.load_t"

    def test_alter_table(self):
        result = _walk("ALTER TABLE dbo.t ADD c INT")
        assert result.statement_type is StatementType.ALTER
        assert _names(result) == ["t"]
        assert result.ddl_object.object_type == "TABLE"

    def test_grant_has_no_table_references(self):
        result = _walk("GRANT SELECT ON dbo.Employees TO reader")
        assert result.statement_type is StatementType.GRANT
        assert result.tables == []

    def test_fetch_into_variables(self):
        result = _walk("FETCH NEXT FROM cur INTO @a, @b")
        assert result.tables == []
        assert [p.full_name for p in result.parameters] == ["@a", "@b"]


# ---------------------------------------------------------------------------
# Subqueries
# ---------------------------------------------------------------------------


class TestSubqueries:
    def test_derived_table(self):
        result = _walk("SELECT * FROM (SELECT Id FROM Employees) e")
        assert result.tables == []
        sub = result.subqueries[0]
        assert sub.alias == "e"
        assert _names(sub) == ["Employees"]
        assert sub.clause == "FROM"
        assert sub.kind is ReferenceKind.DERIVED_TABLE

    def test_derived_table_positions(self):
        sub = _walk("SELECT * FROM (SELECT Id FROM Employees) e").subqueries[0]
        assert sub.start_pos == Position(line=1, col=15)
        assert sub.end_pos == Position(line=1, col=40)

    def test_derived_table_without_alias(self):
        sub = _walk("SELECT * FROM (SELECT Id FROM Employees)").subqueries[0]
        assert sub.alias is None

    @pytest.mark.parametrize(
        ("sql", "clause"),
        [
            ("SELECT * FROM a WHERE Id IN (SELECT Id FROM b)", "WHERE"),
            ("SELECT * FROM a WHERE EXISTS (SELECT 1 FROM b)", "WHERE"),
            ("SELECT * FROM a WHERE NOT EXISTS (SELECT 1 FROM b)", "WHERE"),
            ("SELECT * FROM a WHERE x = (SELECT MAX(x) FROM b)", "WHERE"),
            ("SELECT (SELECT MAX(x) FROM b) AS m FROM a", "SELECT"),
            ("SELECT a.g FROM a GROUP BY a.g HAVING COUNT(*) > (SELECT COUNT(*) FROM b)", "HAVING"),
            ("SELECT CASE WHEN EXISTS (SELECT 1 FROM b) THEN 1 END FROM a", "SELECT"),
        ],
    )
    def test_subquery_positions_in_statement(self, sql, clause):
        result = _walk(sql)
        assert _names(result) == ["a"]
        assert len(result.subqueries) == 1
        assert _names(result.subqueries[0]) == ["b"]
        assert result.subqueries[0].clause == clause

    def test_join_to_derived_table(self):
        result = _walk("SELECT * FROM a JOIN (SELECT * FROM b) x ON a.id = x.id")
        assert _names(result) == ["a"]
        assert result.subqueries[0].alias == "x"

    def test_nested_subqueries(self):
        result = _walk("SELECT * FROM (SELECT * FROM (SELECT * FROM t) i) o")
        outer = result.subqueries[0]
        assert outer.alias == "o"
        assert outer.tables == []
        inner = outer.subqueries[0]
        assert inner.alias == "i"
        assert _names(inner) == ["t"]

    def test_union_inside_subquery_keeps_both_branches(self):
        result = _walk("SELECT * FROM a WHERE id IN (SELECT id FROM b UNION SELECT id FROM c)")
        assert _names(result.subqueries[0]) == ["b", "c"]

    def test_cross_apply_subquery(self):
        result = _walk("SELECT * FROM a CROSS APPLY (SELECT TOP 1 * FROM b WHERE b.id = a.id) x")
        assert _names(result) == ["a"]
        assert result.subqueries[0].alias == "x"
        assert _names(result.subqueries[0]) == ["b"]

    def test_apply_function_produces_nothing(self):
        result = _walk("SELECT * FROM a OUTER APPLY dbo.fn_Split(a.csv, ',') s")
        assert _names(result) == ["a"]
        assert result.subqueries == []

    def test_table_valued_function_produces_nothing(self):
        result = _walk("SELECT * FROM dbo.fn_Rows(1) r JOIN t ON 1 = 1")
        assert _names(result) == ["t"]

    def test_values_constructor(self):
        result = _walk("SELECT * FROM (VALUES (1, 'a'), (2, 'b')) AS v (n, s)")
        assert result.tables == []
        assert [s.alias for s in result.subqueries] == ["v"]
        assert result.subqueries[0].tables == []

    def test_values_constructor_alias_without_as(self):
        result = _walk("SELECT v.a FROM (VALUES (1),(2)) v(a) JOIN t ON t.id = v.a")
        assert _names(result) == ["t"]
        sub = result.subqueries[0]
        assert sub.alias == "v"
        assert sub.kind is ReferenceKind.DERIVED_TABLE
        assert sub.start_pos == Position(line=1, col=17)

    def test_values_constructor_row_subquery(self):
        result = _walk("SELECT * FROM (VALUES ((SELECT MAX(id) FROM t))) v(m)")
        sub = result.subqueries[0]
        assert sub.alias == "v"
        assert sub.tables == []
        assert [_names(s) for s in sub.subqueries] == [["t"]]

    def test_redundant_parentheses_keep_alias(self):
        result = _walk("SELECT * FROM ((SELECT Id FROM Employees)) e")
        assert result.tables == []
        assert len(result.subqueries) == 1
        sub = result.subqueries[0]
        assert sub.alias == "e"
        assert _names(sub) == ["Employees"]
        assert sub.start_pos == Position(line=1, col=16)

    def test_parenthesized_union_derived_table(self):
        result = _walk("SELECT * FROM ((SELECT id FROM a) UNION (SELECT id FROM b)) u")
        outer = result.subqueries[0]
        assert outer.alias == "u"
        assert [_names(s) for s in outer.subqueries] == [["a"], ["b"]]

    def test_parenthesized_join_is_not_a_subquery(self):
        result = _walk("SELECT * FROM ((a JOIN b ON a.id = b.id) JOIN c ON c.id = a.id)")
        assert _names(result) == ["a", "b", "c"]
        assert result.subqueries == []

    def test_redundant_parentheses_in_where(self):
        result = _walk("SELECT * FROM a WHERE id IN ((SELECT id FROM b))")
        assert [_names(s) for s in result.subqueries] == [["b"]]

    def test_window_function_is_ignored(self):
        result = _walk("SELECT ROW_NUMBER() OVER (PARTITION BY a ORDER BY b) FROM t")
        assert _names(result) == ["t"]
        assert result.subqueries == []

    def test_pivot_keeps_operand_subquery(self):
        sql = "SELECT * FROM (SELECT a, b FROM t) src PIVOT (SUM(b) FOR a IN ([x], [y])) p"
        result = _walk(sql)
        assert result.tables == []
        assert [s.alias for s in result.subqueries] == ["src"]

    def test_for_xml_is_ignored(self):
        assert _names(_walk("SELECT a FROM t FOR XML PATH('')")) == ["t"]


# ---------------------------------------------------------------------------
# CTEs
# ---------------------------------------------------------------------------


class TestCtes:
    def test_single_cte(self):
        result = _walk("WITH c AS (SELECT * FROM Employees) SELECT * FROM c")
        assert [cte.name for cte in result.ctes] == ["c"]
        assert _names(result.ctes[0]) == ["Employees"]
        ref = result.tables[0]
        assert ref.name == "c"
        assert ref.is_cte
        assert ref.kind is ReferenceKind.CTE

    def test_chained_ctes_omit_sibling_references(self):
        sql = "WITH a AS (SELECT * FROM t1), b (x) AS (SELECT x FROM a JOIN t2 ON 1 = 1) SELECT * FROM b"
        result = _walk(sql)
        first, second = result.ctes
        assert _names(first) == ["t1"]
        assert second.columns == ["x"]
        assert _names(second) == ["t2"]

    def test_recursive_cte_omits_self_reference(self):
        sql = "WITH r AS (SELECT 1 AS n UNION ALL SELECT n + 1 FROM r WHERE n < 5) SELECT n FROM r"
        result = _walk(sql)
        assert result.ctes[0].tables == []
        assert result.tables[0].is_cte

    def test_cte_with_subquery_and_parameters(self):
        sql = "WITH c AS (SELECT * FROM t WHERE id IN (SELECT id FROM u WHERE x = @X)) SELECT * FROM c"
        cte = _walk(sql).ctes[0]
        assert _names(cte) == ["t"]
        assert _names(cte.subqueries[0]) == ["u"]
        assert [p.full_name for p in cte.parameters] == ["@X"]

    def test_cte_positions(self):
        cte = _walk("WITH c AS (SELECT 1 AS n) SELECT n FROM c").ctes[0]
        assert cte.start_pos == Position(line=1, col=11)
        assert cte.end_pos == Position(line=1, col=25)

    def test_unterminated_cte_body(self):
        result = _walk("WITH c AS (SELECT * FROM t")
        assert _names(result.ctes[0]) == ["t"]


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


class TestParameters:
    def test_deduplicated_first_occurrence_wins(self):
        result = _walk("SELECT * FROM t WHERE a = @A AND b = @@ROWCOUNT AND c = @a AND d = @B")
        assert [p.full_name for p in result.parameters] == ["@A", "@@ROWCOUNT", "@B"]

    def test_system_variable(self):
        param = _walk("SELECT @@ROWCOUNT").parameters[0]
        assert param.name == "ROWCOUNT"
        assert param.is_system
        assert param.kind is ReferenceKind.SYSTEM_VARIABLE

    def test_user_parameter(self):
        param = _walk("SELECT @Foo").parameters[0]
        assert (param.name, param.full_name, param.is_system) == ("Foo", "@Foo", False)
        assert param.kind is ReferenceKind.PARAMETER

    def test_subquery_parameters_surface_at_top_level(self):
        result = _walk("SELECT * FROM t WHERE id IN (SELECT id FROM u WHERE x = @P)")
        assert [p.full_name for p in result.parameters] == ["@P"]
        assert [p.full_name for p in result.subqueries[0].parameters] == ["@P"]

    def test_unicode_parameter(self):
        assert _walk("SELECT * FROM t WHERE n = @Straße").parameters[0].name == "Straße"

    def test_parameters_inside_strings_are_ignored(self):
        assert _walk("SELECT '@NotAParam' FROM t").parameters == []


# ---------------------------------------------------------------------------
# Clause positions
# ---------------------------------------------------------------------------


class TestClausePositions:
    def test_top_level_clauses(self):
        result = _walk("SELECT a FROM t WHERE x = 1 GROUP BY a HAVING COUNT(*) > 1 ORDER BY a")
        assert [c.clause for c in result.clause_positions] == [
            "SELECT",
            "FROM",
            "WHERE",
            "GROUP BY",
            "HAVING",
            "ORDER BY",
        ]

    def test_subquery_clauses_are_not_top_level(self):
        result = _walk("SELECT a FROM t WHERE x IN (SELECT y FROM u WHERE z = 1)")
        assert [c.clause for c in result.clause_positions] == ["SELECT", "FROM", "WHERE"]

    def test_clause_spans(self):
        select, from_ = _walk("SELECT a\nFROM t").clause_positions
        assert (select.start, select.end) == (Position(line=1, col=1), Position(line=1, col=8))
        assert (from_.start, from_.end) == (Position(line=2, col=1), Position(line=2, col=6))


# ---------------------------------------------------------------------------
# Malformed input and limits
# ---------------------------------------------------------------------------


class TestTolerance:
    def test_unterminated_subquery(self):
        result = _walk("SELECT * FROM (SELECT * FROM t")
        assert _names(result.subqueries[0]) == ["t"]

    def test_extra_closing_parenthesis(self):
        assert _names(_walk("SELECT * FROM a) JOIN b ON 1 = 1")) == ["a", "b"]

    def test_dangling_from(self):
        assert _walk("SELECT * FROM").tables == []

    def test_dangling_dot(self):
        result = _walk("SELECT * FROM dbo.")
        assert result.tables == []

    def test_depth_limit(self, caplog):
        sql = "SELECT 1 FROM t0"
        for i in range(1, 8):
            sql = f"SELECT 1 FROM t{i} WHERE x IN ({sql})"

        with caplog.at_level(logging.WARNING, logger="chunk_engine.parser.walker"):
            result = _walk(sql, max_depth=3)

        depth = 0
        level = result.subqueries
        while level:
            depth += 1
            level = level[0].subqueries
        assert depth == 3
        assert _names(result) == ["t7"]
        assert "Nesting depth limit 3" in caplog.text

    def test_pathological_nesting_does_not_overflow(self):
        result = _walk("SELECT " + "(" * 2000 + "1" + ")" * 2000 + " FROM t")
        assert _names(result) == ["t"]

    def test_unbalanced_pathological_nesting(self):
        result = _walk("SELECT * FROM t WHERE " + "(" * 2000)
        assert _names(result) == ["t"]
