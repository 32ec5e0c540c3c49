import pytest
from sqlalchemy import text

from db.session import engine, validate_db_compatibility


def test_current_schema_is_compatible():
    validate_db_compatibility()


def test_reservation_table_without_interval_columns_is_reported():
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE notifications"))
        conn.execute(text("DROP TABLE facility_reservations"))
        conn.execute(text("CREATE TABLE facility_reservations (id VARCHAR PRIMARY KEY, facility_id VARCHAR)"))

    with pytest.raises(RuntimeError) as excinfo:
        validate_db_compatibility()

    message = str(excinfo.value)
    assert "missing tables [notifications]" in message
    assert "facility_reservations: " in message
    for column in ("end_time", "start_time", "status"):
        assert column in message
