from event_attendance.database.bootstrap import iter_sql_statements


def test_splits_on_semicolons_outside_quotes():
    sql = """
    CREATE TABLE a (id INT);
    INSERT INTO a VALUES ('x;y');
    INSERT INTO b VALUES ("it\\'s; fine")
    """

    assert list(iter_sql_statements(sql)) == [
        "CREATE TABLE a (id INT)",
        "INSERT INTO a VALUES ('x;y')",
        "INSERT INTO b VALUES (\"it\\'s; fine\")",
    ]


def test_blank_statements_are_skipped():
    assert list(iter_sql_statements(";;  ;\n")) == []
