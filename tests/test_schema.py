import unittest

from accident_pipeline.schema import (
    ACCIDENT_COLUMNS,
    SILVER_COLUMNS,
    convert_value,
    create_table_sql,
    parse_csv,
    parse_row,
    INTEGER,
    REAL,
)
from tests.fakes import CSV_HEADER, csv_line


class TestRecordModel(unittest.TestCase):

    def test_column_sets(self):
        self.assertEqual(len(ACCIDENT_COLUMNS), 32)
        self.assertEqual(len(SILVER_COLUMNS), 34)

    def test_source_headers_map_to_columns(self):
        record = parse_row({
            "Accident_Index": "201501BS70001",
            "Local_Authority_(District)": "12",
            "Local_Authority_(Highway)": "E09000020",
            "1st_Road_Class": "3",
            "Pedestrian_Crossing-Human_Control": "0",
            "Longitude": "-0.198465",
        })
        self.assertEqual(record["accident_index"], "201501BS70001")
        self.assertEqual(record["local_authority_district"], 12)
        self.assertEqual(record["local_authority_highway"], "E09000020")
        self.assertEqual(record["first_road_class"], 3)
        self.assertEqual(record["pedestrian_crossing_human_control"], 0)
        self.assertAlmostEqual(record["longitude"], -0.198465)

    def test_missing_and_unknown_columns_are_tolerated(self):
        record = parse_row({"Accident_Index": "A1", "Not_A_Column": "x"})
        self.assertEqual(record["accident_index"], "A1")
        self.assertIsNone(record["speed_limit"])
        self.assertNotIn("Not_A_Column", record)

    def test_blank_cells_become_none(self):
        self.assertIsNone(convert_value("", INTEGER))
        self.assertIsNone(convert_value("   ", REAL))
        self.assertIsNone(convert_value(None, INTEGER))

    def test_integer_conversion(self):
        self.assertEqual(convert_value("-1", INTEGER), -1)
        self.assertEqual(convert_value("30.0", INTEGER), 30)
        with self.assertRaises(ValueError):
            convert_value("30.5", INTEGER)
        with self.assertRaises(ValueError):
            convert_value("thirty", INTEGER)

    def test_parse_csv_skips_bad_rows(self):
        text = "\n".join([
            CSV_HEADER,
            csv_line(accident_index="A1", speed_limit=30),
            csv_line(accident_index="A2", speed_limit="fast"),
            csv_line(accident_index="A3", speed_limit=70),
        ]) + "\n"
        records, errors = parse_csv(text, "accidents_2015.csv")

        self.assertEqual([r["accident_index"] for r in records], ["A1", "A3"])
        self.assertEqual(len(errors), 1)
        self.assertIn("row 3", errors[0])
        self.assertIn("accidents_2015.csv", errors[0])
        self.assertIn("Speed_Limit", errors[0])

    def test_parse_csv_ignores_bom_in_header(self):
        text = "\ufeffAccident_Index,Speed_Limit\nA1,30\n"
        records, errors = parse_csv(text, "bom.csv")
        self.assertEqual(errors, [])
        self.assertEqual(records[0]["accident_index"], "A1")

    def test_create_table_sql_lists_every_column(self):
        ddl = create_table_sql("bronze_x", ACCIDENT_COLUMNS, if_not_exists=False)
        self.assertTrue(ddl.startswith("CREATE TABLE bronze_x"))
        for column in ACCIDENT_COLUMNS:
            self.assertIn(f"{column.name} {column.sql_type}", ddl)


if __name__ == '__main__':
    unittest.main()
