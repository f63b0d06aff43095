import unittest
from unittest.mock import Mock

from vango.db import InMemoryDbClient, SavedPaymentMethod
from vango.payment_methods import SavedPaymentMethodService


def _card(user_id="u1", last4="4242", month=12, year=2030, **kwargs):
    return SavedPaymentMethod(
        user_id=user_id,
        card_last4=last4,
        card_exp_month=month,
        card_exp_year=year,
        **kwargs,
    )


class SavedPaymentMethodServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.service = SavedPaymentMethodService(self.db)

    def test_list_orders_default_first_then_newest(self):
        oldest = self.service.save_payment_method(_card(last4="1111")).data
        default = self.service.save_payment_method(_card(last4="2222", is_default=True)).data
        newest = self.service.save_payment_method(_card(last4="3333")).data
        self.service.save_payment_method(_card(user_id="u2", last4="9999"))

        result = self.service.get_user_payment_methods("u1")
        self.assertTrue(result.is_ok)
        self.assertEqual(
            [m.id for m in result.data], [default.id, newest.id, oldest.id]
        )

    def test_list_for_unknown_user_is_empty(self):
        result = self.service.get_user_payment_methods("nobody")
        self.assertTrue(result.is_ok)
        self.assertEqual(result.data, [])

    def test_default_missing_is_not_found(self):
        self.service.save_payment_method(_card())
        result = self.service.get_default_payment_method("u1")
        self.assertTrue(result.is_not_found)
        self.assertIsNone(result.data)
        self.assertIsNone(result.error)

    def test_default_lookup_failure(self):
        db = Mock()
        db.find_default_payment_method.side_effect = RuntimeError("connection reset")
        result = SavedPaymentMethodService(db).get_default_payment_method("u1")
        self.assertTrue(result.is_failed)
        self.assertEqual(result.error, "connection reset")

    def test_set_default_twice_leaves_both_defaults(self):
        first = self.service.save_payment_method(_card(last4="1111")).data
        second = self.service.save_payment_method(_card(last4="2222")).data

        self.assertTrue(self.service.set_default_payment_method(first.id, "u1").is_ok)
        self.assertTrue(self.service.set_default_payment_method(second.id, "u1").is_ok)

        methods = self.service.get_user_payment_methods("u1").data
        self.assertTrue(all(m.is_default for m in methods))
        # With several defaults the newest wins.
        self.assertEqual(self.service.get_default_payment_method("u1").data.id, second.id)

    def test_exclusive_default_clears_previous(self):
        service = SavedPaymentMethodService(self.db, exclusive_default=True)
        first = service.save_payment_method(_card(last4="1111")).data
        second = service.save_payment_method(_card(last4="2222")).data

        service.set_default_payment_method(first.id, "u1")
        service.set_default_payment_method(second.id, "u1")

        defaults = [m.id for m in service.get_user_payment_methods("u1").data if m.is_default]
        self.assertEqual(defaults, [second.id])

    def test_set_default_for_other_users_method_is_not_found(self):
        method = self.service.save_payment_method(_card(user_id="u1")).data
        result = self.service.set_default_payment_method(method.id, "u2")
        self.assertTrue(result.is_not_found)
        self.assertFalse(self.db.payment_methods[method.id].is_default)

    def test_delete_payment_method(self):
        method = self.service.save_payment_method(_card()).data
        self.assertTrue(self.service.delete_payment_method(method.id, "u2").is_not_found)
        self.assertTrue(self.service.delete_payment_method(method.id, "u1").is_ok)
        self.assertEqual(self.service.get_user_payment_methods("u1").data, [])

    def test_check_duplicate_card_matches_all_three_fields(self):
        self.service.save_payment_method(_card(last4="4242", month=12, year=2030))

        def exists(last4, month, year, user_id="u1"):
            return self.service.check_duplicate_card(user_id, last4, month, year).data

        self.assertTrue(exists("4242", 12, 2030))
        self.assertFalse(exists("4242", 11, 2030))
        self.assertFalse(exists("4242", 12, 2031))
        self.assertFalse(exists("1111", 12, 2030))
        self.assertFalse(exists("4242", 12, 2030, user_id="u2"))

    def test_save_does_not_deduplicate(self):
        self.service.save_payment_method(_card())
        self.service.save_payment_method(_card())
        self.assertEqual(len(self.service.get_user_payment_methods("u1").data), 2)

    def test_save_failure(self):
        db = Mock()
        db.insert_payment_method.side_effect = RuntimeError("unique violation")
        result = SavedPaymentMethodService(db).save_payment_method(_card())
        self.assertTrue(result.is_failed)
        self.assertIsNone(result.data)


if __name__ == "__main__":
    unittest.main()
