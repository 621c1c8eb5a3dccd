"""Tests for the SQL, constant and method-body heuristics."""

from codetrace.sql import (
    extract_constant_value,
    extract_method_body,
    extract_sql_from_context,
    extract_table_columns,
    extract_tables_from_sql,
    find_method_definition,
    method_body_at_line,
    population_calls,
    primary_table,
)

LOADER = """public class ConfigLoader {

    public void refresh() {
        populateColPlanList();
    }

    public void populateColPlanList() {
        if (ready) {
            list = jdbcTemplate.query("SELECT PLAN_CODE FROM PLAN_TABLE");
        }
    }
}
"""


class TestExtractSql:
    """SQL literal extraction."""

    def test_double_quoted(self):
        """Test a statement in a double-quoted literal."""
        context = 'rows = jdbc.query("SELECT id FROM ORDERS WHERE id = ?", id);'

        assert extract_sql_from_context(context) == "SELECT id FROM ORDERS WHERE id = ?"

    def test_concatenated_literal(self):
        """Test that adjacent concatenated literals are joined."""
        context = 'String sql = "SELECT * " +\n    "FROM PLAN_TABLE";'

        assert extract_sql_from_context(context) == "SELECT * FROM PLAN_TABLE"

    def test_triple_quoted(self):
        """Test a Python triple-quoted statement."""
        context = 'cur.execute("""\n    UPDATE accounts\n    SET active = 0\n""")'

        assert extract_sql_from_context(context) == "UPDATE accounts SET active = 0"

    def test_no_sql(self):
        """Test text without a quoted statement."""
        assert extract_sql_from_context('log.info("selected item")') is None
        assert extract_sql_from_context("") is None


class TestTables:
    """Table name helpers."""

    def test_tables_in_clause_order(self):
        """Test FROM/JOIN/INTO/UPDATE extraction without duplicates."""
        sql = "SELECT * FROM orders o JOIN customers c ON o.cid = c.id JOIN orders x ON 1=1"

        assert extract_tables_from_sql(sql) == ["orders", "customers"]

    def test_primary_table(self):
        """Test the table a statement reads or writes."""
        assert primary_table("SELECT a FROM t1 JOIN t2") == "t1"
        assert primary_table("INSERT INTO audit VALUES (1)") == "audit"
        assert primary_table("UPDATE plans SET x = 1") == "plans"
        assert primary_table(None) is None

    def test_table_columns(self):
        """Test column extraction from a CREATE TABLE body."""
        ddl = "CREATE TABLE PLAN_TABLE (\n  PLAN_CODE VARCHAR(20) PRIMARY KEY,\n  ACTIVE CHAR(1),\n  PRIMARY KEY (PLAN_CODE)\n);"

        columns = extract_table_columns(ddl)

        assert columns == [
            {"name": "PLAN_CODE", "type": "VARCHAR(20)"},
            {"name": "ACTIVE", "type": "CHAR(1)"},
        ]


class TestConstants:
    """Constant value extraction."""

    def test_quoted_value(self):
        """Test a double-quoted value."""
        assert extract_constant_value('static final String MODE = "strict";', "MODE") == "strict"

    def test_numeric_value(self):
        """Test a numeric value."""
        assert extract_constant_value("MAX_RETRIES = -3;", "MAX_RETRIES") == "-3"

    def test_identifier_value(self):
        """Test a value that is itself another identifier."""
        assert extract_constant_value("ALIAS = Defaults.MODE;", "ALIAS") == "Defaults.MODE"

    def test_missing(self):
        """Test a name that is never assigned."""
        assert extract_constant_value("use(MODE);", "MODE") is None


class TestMethodBodies:
    """Method body and definition helpers."""

    def test_brace_matched_body(self):
        """Test that nested braces are balanced."""
        start = LOADER.index("public void populateColPlanList")
        body = extract_method_body(LOADER, start)

        assert body.startswith("{")
        assert body.endswith("}")
        assert "PLAN_TABLE" in body
        assert body.count("{") == body.count("}")

    def test_call_site_has_no_body(self):
        """Test that a statement ending before any brace is not a declaration."""
        start = LOADER.index("populateColPlanList();")

        assert extract_method_body(LOADER, start) == ""

    def test_body_at_line(self):
        """Test body lookup by 1-based line number."""
        assert "jdbcTemplate" in method_body_at_line(LOADER, 7)
        assert method_body_at_line(LOADER, 4) == ""
        assert method_body_at_line(LOADER, 999) == ""

    def test_find_definition_skips_calls(self):
        """Test that the declaration, not the call, is found."""
        definition = find_method_definition(LOADER, "populateColPlanList")

        assert definition is not None
        assert definition.line == 7
        assert definition.signature == "public void populateColPlanList()"
        assert "SELECT PLAN_CODE" in definition.body

    def test_find_definition_missing(self):
        """Test an undefined method."""
        assert find_method_definition(LOADER, "loadEverything") is None

    def test_population_calls(self):
        """Test populate/load/init call names in order."""
        text = "initCache(); loadPlans(x); populateColPlanList(); loadPlans(y); other();"

        assert population_calls(text) == ["initCache", "loadPlans", "populateColPlanList"]
