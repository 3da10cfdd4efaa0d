import sqlite3
import unittest
from datetime import date

from accident_pipeline.dimensions import (
    DIMENSIONS,
    UNKNOWN_DESCRIPTION,
    Dimension,
    create_dimension_table,
    refresh_all_dimensions,
    refresh_dimension,
)
from tests.fakes import DatabaseTestMixin, silver_row

LIGHT = DIMENSIONS[0]
POLICE = next(d for d in DIMENSIONS if d.attribute == "police_force")
RUN_DATE = date(2024, 3, 1)


class TestDimensionRefresh(DatabaseTestMixin, unittest.TestCase):

    def rows(self, dimension):
        columns = ", ".join(dimension.columns)
        return self.conn.execute(
            f"SELECT {columns} FROM {dimension.table} ORDER BY {dimension.key_column}"
        ).fetchall()

    def test_inserts_one_active_row_per_distinct_code(self):
        self.insert_silver([
            silver_row("A1", light_conditions=1),
            silver_row("A2", light_conditions=1),
            silver_row("A3", light_conditions=4),
        ])

        inserted = refresh_dimension(self.conn, LIGHT, run_date=RUN_DATE)

        self.assertEqual(inserted, 2)
        self.assertEqual(self.rows(LIGHT), [
            (1, "Daylights", "2024-03-01", None, 1),
            (4, "Darkness with street lighting", "2024-03-01", None, 1),
        ])

    def test_rerun_without_new_values_inserts_nothing(self):
        self.insert_silver([silver_row("A1", light_conditions=1), silver_row("A2", light_conditions=4)])
        refresh_dimension(self.conn, LIGHT, run_date=RUN_DATE)

        inserted = refresh_dimension(self.conn, LIGHT, run_date=date(2024, 3, 8))

        self.assertEqual(inserted, 0)
        self.assertEqual(len(self.rows(LIGHT)), 2)

    def test_changed_description_supersedes_active_row(self):
        create_dimension_table(self.conn, LIGHT)
        self.conn.execute(
            "INSERT INTO dim_light_conditions (light_conditions, description, start_date, end_date, status) "
            "VALUES (5, 'Darkness - no lighting', '2020-01-01', NULL, 1)"
        )
        self.conn.commit()
        self.insert_silver([silver_row("A1", light_conditions=5)])

        inserted = refresh_dimension(self.conn, LIGHT, run_date=RUN_DATE)

        self.assertEqual(inserted, 1)
        self.assertEqual(self.rows(LIGHT), [
            (5, "Darkness - no lighting", "2020-01-01", "2024-03-01", 0),
            (5, "Darkness without street lighting", "2024-03-01", None, 1),
        ])

    def test_at_most_one_active_row_per_code_across_versions(self):
        self.insert_silver([silver_row("A1", light_conditions=7)])
        versions = [
            Dimension("light_conditions", "dim_light_conditions", {7: "Unknown lighting"}),
            Dimension("light_conditions", "dim_light_conditions", {7: "Darkness - lighting unknown"}),
            Dimension("light_conditions", "dim_light_conditions", {7: "Darkness with unknown lighting status"}),
        ]

        for day, dimension in enumerate(versions, start=1):
            refresh_dimension(self.conn, dimension, run_date=date(2024, 1, day))

        self.assertEqual(self.scalar("SELECT COUNT(*) FROM dim_light_conditions WHERE light_conditions = 7"), 3)
        self.assertEqual(
            self.scalar("SELECT COUNT(*) FROM dim_light_conditions WHERE light_conditions = 7 AND status = 1"), 1
        )
        self.assertEqual(
            self.scalar("SELECT description FROM dim_light_conditions WHERE status = 1"),
            "Darkness with unknown lighting status",
        )

    def test_active_index_rejects_second_active_row(self):
        create_dimension_table(self.conn, LIGHT)
        insert = (
            "INSERT INTO dim_light_conditions (light_conditions, description, start_date, status) "
            "VALUES (1, ?, '2024-01-01', 1)"
        )
        self.conn.execute(insert, ("Daylights",))
        with self.assertRaises(sqlite3.IntegrityError):
            self.conn.execute(insert, ("Daylight",))
        self.conn.rollback()

    def test_dimension_without_descriptions_has_no_description_column(self):
        self.insert_silver([silver_row("A1", police_force=1), silver_row("A2", police_force=44)])

        inserted = refresh_dimension(self.conn, POLICE, run_date=RUN_DATE)

        self.assertEqual(inserted, 2)
        columns = [row[1] for row in self.conn.execute("PRAGMA table_info(dim_police_force)").fetchall()]
        self.assertNotIn("description", columns)
        self.assertEqual(self.rows(POLICE), [(1, "2024-03-01", None, 1), (44, "2024-03-01", None, 1)])

    def test_unmapped_code_is_described_as_unknown(self):
        self.insert_silver([silver_row("A1", light_conditions=3)])

        refresh_dimension(self.conn, LIGHT, run_date=RUN_DATE)

        self.assertEqual(self.scalar("SELECT description FROM dim_light_conditions"), UNKNOWN_DESCRIPTION)

    def test_null_codes_are_ignored(self):
        self.insert_silver([silver_row("A1", light_conditions=None), silver_row("A2", light_conditions=1)])

        inserted = refresh_dimension(self.conn, LIGHT, run_date=RUN_DATE)

        self.assertEqual(inserted, 1)
        self.assertEqual(self.scalar("SELECT COUNT(*) FROM dim_light_conditions WHERE light_conditions IS NULL"), 0)


class TestRefreshAllDimensions(DatabaseTestMixin, unittest.TestCase):

    def test_refreshes_every_dimension(self):
        self.insert_silver([silver_row("A1"), silver_row("A2", accident_severity=1)])

        total, errors = refresh_all_dimensions(self.conn, run_date=RUN_DATE)

        self.assertEqual(errors, [])
        self.assertEqual(total, 8)
        for dimension in DIMENSIONS:
            self.assertGreater(self.scalar(f"SELECT COUNT(*) FROM {dimension.table}"), 0)

    def test_failing_attribute_does_not_stop_the_others(self):
        self.conn.execute("CREATE TABLE partial_source (light_conditions INTEGER, police_force INTEGER)")
        self.conn.execute("INSERT INTO partial_source VALUES (1, 7)")
        self.conn.commit()

        total, errors = refresh_all_dimensions(self.conn, DIMENSIONS, "partial_source", RUN_DATE)

        self.assertEqual(total, 2)
        self.assertEqual(len(errors), len(DIMENSIONS) - 2)
        self.assertTrue(errors[0].startswith("Error processing weather_conditions:"))
        self.assertEqual(self.scalar("SELECT COUNT(*) FROM dim_police_force"), 1)


if __name__ == '__main__':
    unittest.main()
