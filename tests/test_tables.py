"""Table name parsing and staging name synthesis."""

import re
import unittest

from greenplum_copy.errors import MalformedIdentifier
from greenplum_copy.tables import (
    CanonicalTableName,
    extract_table_name,
    staging_table_name,
    unqualified_name,
)


class ExtractTableNameTest(unittest.TestCase):
    def test_schema_qualified(self):
        self.assertEqual(extract_table_name("public.orders"), CanonicalTableName("public", "orders"))

    def test_plain_name(self):
        self.assertEqual(extract_table_name("orders"), CanonicalTableName(None, "orders"))

    def test_quoted_components(self):
        self.assertEqual(extract_table_name('"orders"'), CanonicalTableName(None, "orders"))
        parsed = extract_table_name('"sales"."Orders_2024"')
        self.assertEqual(parsed.schema, '"sales"')
        self.assertEqual(parsed.raw_name, "Orders_2024")

    def test_rejects_illegal_names(self):
        for bad in ["1-2", "a.b.c", "", ".orders", "public.", "or ders", "public.ord-ers"]:
            with self.subTest(name=bad):
                with self.assertRaises(MalformedIdentifier) as ctx:
                    extract_table_name(bad)
                self.assertIn("dbtable", str(ctx.exception))

    def test_malformed_identifier_is_value_error(self):
        with self.assertRaises(ValueError):
            extract_table_name("1-2")


class StagingNameTest(unittest.TestCase):
    def test_staging_name_keeps_schema_and_quotes_table(self):
        name = staging_table_name(CanonicalTableName("public", "orders"), "ab" * 16)
        self.assertEqual(name, f'public."orders_{"ab" * 16}_sparkGpTmp"')

    def test_staging_name_is_random_per_call(self):
        canonical = CanonicalTableName(None, "orders")
        first = staging_table_name(canonical)
        second = staging_table_name(canonical)
        self.assertNotEqual(first, second)
        self.assertRegex(first, re.compile(r'^"orders_[0-9a-f]{32}_sparkGpTmp"$'))
        self.assertNotEqual(first, "orders")

    def test_unqualified_name(self):
        self.assertEqual(unqualified_name("public.orders"), "orders")
        self.assertEqual(unqualified_name("orders"), "orders")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
