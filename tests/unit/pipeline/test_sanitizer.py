"""Tests for the SQL sanitizer."""

import pytest

from data_agent.models.errors import InvalidSqlInput
from data_agent.pipeline.aliases import AliasTable
from data_agent.pipeline.sanitizer import SqlSanitizer, sanitize


class TestAliasReplacement:
    def test_replaces_table_and_columns(self, aliases):
        sql = "SELECT title FROM album WHERE year = 2016"

        assert sanitize(sql, aliases) == "SELECT ttle FROM albm WHERE col1 = 2016"

    def test_plural_and_case(self, aliases):
        assert sanitize("select Name from Artists", aliases) == "select NM from artist"

    def test_qualified_references(self, aliases):
        sql = "SELECT a.title, ar.name FROM album a JOIN artist ar ON a.artist_id = ar.ArtistId"

        assert sanitize(sql, aliases) == (
            "SELECT a.ttle, ar.NM FROM albm a JOIN artist ar ON a.a_id = ar.ArtistId"
        )

    def test_substrings_untouched(self, aliases):
        assert sanitize("SELECT * FROM albmography", aliases) == "SELECT * FROM albmography"
        assert sanitize("SELECT * FROM albumography", aliases) == "SELECT * FROM albumography"
        assert sanitize("SELECT titles_count FROM stats", aliases) == "SELECT titles_count FROM stats"

    def test_string_literals_untouched(self, aliases):
        sql = "SELECT title FROM album WHERE title = 'Greatest album of the year'"

        assert sanitize(sql, aliases) == (
            "SELECT ttle FROM albm WHERE ttle = 'Greatest album of the year'"
        )

    def test_escaped_quote_in_literal(self, aliases):
        sql = "SELECT * FROM album WHERE title = 'It''s the album'"

        assert sanitize(sql, aliases) == "SELECT * FROM albm WHERE ttle = 'It''s the album'"

    def test_quoted_identifiers_untouched(self, aliases):
        assert sanitize('SELECT "title" FROM album', aliases) == 'SELECT "title" FROM albm'

    def test_extract_field_keyword_kept(self, aliases):
        sql = "SELECT EXTRACT(YEAR FROM invoice_date) AS year FROM invoices"

        assert sanitize(sql, aliases) == (
            "SELECT EXTRACT(YEAR FROM date_of_invoice) AS col1 FROM invoice"
        )


class TestNormalization:
    def test_quoted_number_unquoted(self, aliases):
        assert sanitize("SELECT ttle FROM albm WHERE col1 = '2016'", aliases) == (
            "SELECT ttle FROM albm WHERE col1 = 2016"
        )

    def test_quoted_number_with_operator_and_spacing(self, aliases):
        assert sanitize("SELECT * FROM trk WHERE cost >='0.99'", aliases) == (
            "SELECT * FROM trk WHERE cost >=0.99"
        )

    def test_quoted_text_kept(self, aliases):
        sql = "SELECT * FROM artist WHERE NM = 'AC/DC'"

        assert sanitize(sql, aliases) == sql

    def test_quoted_number_inside_string_literal_kept(self, aliases):
        sql = "SELECT ttle FROM albm WHERE ttle LIKE '%size=\"10\"%'"

        assert sanitize(sql, aliases) == sql

    def test_comparison_inside_string_literal_kept(self, aliases):
        sql = "SELECT * FROM trk WHERE NM = 'x = ''5'''"

        assert sanitize(sql, aliases) == sql

    def test_comments_stripped(self, aliases):
        sql = "-- fetch titles\nSELECT title /* the name */ FROM album"

        assert sanitize(sql, aliases) == "SELECT ttle FROM albm"

    def test_whitespace_collapsed(self, aliases):
        sql = "SELECT ttle\n  FROM albm\n\tWHERE col1 = 2016;\n"

        assert sanitize(sql, aliases) == "SELECT ttle FROM albm WHERE col1 = 2016;"


class TestIdempotence:
    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT ttle FROM albm WHERE col1 = 2016;",
            "SELECT title FROM album WHERE year = '2016'",
            "SELECT EXTRACT(YEAR FROM invoice_date), COUNT(*) FROM invoices GROUP BY 1",
            "SELECT * FROM album WHERE title = 'album  title'  -- note",
        ],
    )
    def test_sanitize_twice_is_sanitize_once(self, aliases, sql):
        once = sanitize(sql, aliases)

        assert sanitize(once, aliases) == once

    def test_already_sanitized_sql_unchanged(self, aliases):
        sql = "SELECT ttle FROM albm WHERE col1 = 2016;"

        assert sanitize(sql, aliases) == sql


class TestInvalidInput:
    @pytest.mark.parametrize("value", [None, 42, b"SELECT 1"])
    def test_non_string(self, aliases, value):
        with pytest.raises(InvalidSqlInput):
            sanitize(value, aliases)

    @pytest.mark.parametrize("value", ["", "   \n"])
    def test_blank(self, aliases, value):
        with pytest.raises(InvalidSqlInput, match="Empty SQL"):
            sanitize(value, aliases)


class TestSqlSanitizer:
    def test_bound_alias_table(self):
        sanitizer = SqlSanitizer(AliasTable({"album": "albm"}))

        assert sanitizer.sanitize("SELECT * FROM album") == "SELECT * FROM albm"
        assert sanitizer.aliases["album"] == "albm"
