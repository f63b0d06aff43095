import unittest

from vango.db import PostgresDbClient, SavedPaymentMethod


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    @classmethod
    def setUpClass(cls):
        cls.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            PostgresDbClient("")

    def test_insert_and_find_latest_location(self):
        first = self.db.insert_location("pg-b1", "t1", 60.0, 24.0)
        latest = self.db.insert_location("pg-b1", "t1", 60.5, 24.5, heading=90.0, speed=12.5)
        self.db.insert_location("pg-b2", "t2", 61.0, 25.0)

        self.assertNotEqual(first.id, latest.id)
        found = self.db.find_latest_location("pg-b1")
        self.assertEqual(found.id, latest.id)
        self.assertEqual(found.heading, 90.0)
        self.assertEqual(found.speed, 12.5)
        self.assertIsNone(self.db.find_latest_location("pg-missing"))

    def test_find_latest_location_by_transporter(self):
        mine = self.db.insert_location("pg-b3", "t1", 60.0, 24.0)
        self.db.insert_location("pg-b3", "t2", 60.1, 24.1)
        found = self.db.find_latest_location("pg-b3", transporter_id="t1")
        self.assertEqual(found.id, mine.id)

    def test_payment_method_ordering_and_default(self):
        older = self.db.insert_payment_method(
            SavedPaymentMethod("pg-u1", "1111", 1, 2030, created_at=100.0)
        )
        newer = self.db.insert_payment_method(
            SavedPaymentMethod("pg-u1", "2222", 2, 2030, created_at=200.0)
        )
        default = self.db.insert_payment_method(
            SavedPaymentMethod("pg-u1", "3333", 3, 2030, is_default=True, created_at=50.0)
        )

        ids = [m.id for m in self.db.list_payment_methods("pg-u1")]
        self.assertEqual(ids, [default.id, newer.id, older.id])
        self.assertEqual(self.db.find_default_payment_method("pg-u1").id, default.id)
        self.assertIsNone(self.db.find_default_payment_method("pg-nobody"))

    def test_set_default_is_not_exclusive_unless_asked(self):
        a = self.db.insert_payment_method(SavedPaymentMethod("pg-u2", "1111", 1, 2030))
        b = self.db.insert_payment_method(SavedPaymentMethod("pg-u2", "2222", 2, 2030))

        self.db.set_payment_method_default(a.id, "pg-u2")
        self.db.set_payment_method_default(b.id, "pg-u2")
        self.assertTrue(all(m.is_default for m in self.db.list_payment_methods("pg-u2")))

        self.db.set_payment_method_default(a.id, "pg-u2", exclusive=True)
        defaults = [m.id for m in self.db.list_payment_methods("pg-u2") if m.is_default]
        self.assertEqual(defaults, [a.id])

    def test_set_default_checks_owner(self):
        method = self.db.insert_payment_method(SavedPaymentMethod("pg-u3", "1111", 1, 2030))
        self.assertIsNone(self.db.set_payment_method_default(method.id, "pg-other"))
        self.assertIsNone(self.db.set_payment_method_default("missing", "pg-u3"))

    def test_delete_and_find_by_card(self):
        method = self.db.insert_payment_method(
            SavedPaymentMethod("pg-u4", "4242", 12, 2031, card_brand="visa")
        )
        found = self.db.find_payment_method_by_card("pg-u4", "4242", 12, 2031)
        self.assertEqual(found.id, method.id)
        self.assertEqual(found.card_brand, "visa")
        self.assertIsNone(self.db.find_payment_method_by_card("pg-u4", "4242", 11, 2031))

        self.assertFalse(self.db.delete_payment_method(method.id, "pg-other"))
        self.assertTrue(self.db.delete_payment_method(method.id, "pg-u4"))
        self.assertFalse(self.db.delete_payment_method(method.id, "pg-u4"))
        self.assertEqual(self.db.list_payment_methods("pg-u4"), [])


if __name__ == "__main__":
    unittest.main()
