from keelorm.dialects import MySQLDialect


def test_mysql_dialect_uses_backticks():
    dialect = MySQLDialect()
    assert dialect.quote_identifier("job`history") == "`job``history`"
    assert dialect.format_table("hr.locations") == "`hr`.`locations`"


def test_mysql_offset_without_limit():
    dialect = MySQLDialect()
    assert dialect.limit_clause(None, 20) == "LIMIT 18446744073709551615 OFFSET 20"


def test_mysql_generated_key_and_nullable_columns():
    dialect = MySQLDialect()
    assert dialect.render_generated_key("member_id") == (
        "`member_id` INTEGER NOT NULL AUTO_INCREMENT PRIMARY KEY"
    )
    assert dialect.render_column_definition("city", "VARCHAR(30)", nullable=False) == (
        "`city` VARCHAR(30) NOT NULL"
    )
    assert not dialect.capabilities.supports_returning
