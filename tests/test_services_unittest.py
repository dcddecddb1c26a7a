import os
import unittest
from datetime import datetime
from unittest import mock
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from storage import MemoryStorage
from products import ProductRepository
from transactions import TransactionRepository
from models import (
    Product, Cart, EmptyCartError, InsufficientCashError, InsufficientStockError,
    ProductNotFoundError, ValidationError, PLACEHOLDER_IMAGE,
)
from services import (
    calculate_totals, calculate_change, CartService, CheckoutService, ProductService, TAX_RATE,
)

NOW = datetime(2024, 5, 1, 12, 0, 0)


class CalculatorTests(unittest.TestCase):
    def test_totals_for_two_coffees(self):
        cart = Cart()
        cart.add(Product(1, "Kopi Hitam", 15000.0, 20, "Drinks"), 2)
        totals = calculate_totals(cart.items, 35000)
        self.assertEqual(totals.subtotal, 30000.0)
        self.assertEqual(totals.tax, 3000.0)
        self.assertEqual(totals.total, 33000.0)
        self.assertEqual(totals.change, 2000.0)

    def test_total_is_subtotal_plus_tax(self):
        cart = Cart()
        cart.add(Product(1, "A", 12.35, 10, "Food"), 3)
        cart.add(Product(2, "B", 0.99, 10, "Snacks"), 7)
        totals = calculate_totals(cart.items)
        self.assertAlmostEqual(totals.tax, round(totals.subtotal * TAX_RATE, 2))
        self.assertAlmostEqual(totals.total, totals.subtotal + totals.tax)

    def test_tax_is_rounded_to_cents(self):
        cart = Cart()
        cart.add(Product(1, "A", 12.34, 10, "Food"))
        totals = calculate_totals(cart.items)
        self.assertEqual(totals.tax, 1.23)
        self.assertEqual(totals.total, 13.57)

    def test_change_never_negative(self):
        self.assertEqual(calculate_change(30000, 33000), 0.0)
        self.assertEqual(calculate_change(33000, 33000), 0.0)
        self.assertEqual(calculate_change(50000, 46200), 3800.0)

    def test_empty_cart_totals_are_zero(self):
        self.assertEqual(calculate_totals([]).as_dict(),
                         {'subtotal': 0, 'tax': 0, 'total': 0, 'change': 0.0})


class _Fixture(unittest.TestCase):
    def setUp(self):
        self.storage = MemoryStorage()
        self.products = ProductRepository(self.storage)
        self.transactions = TransactionRepository(self.storage)
        self.products.replace_all([
            Product(1, "Kopi Hitam", 15000.0, 20, "Drinks"),
            Product(2, "Roti Bakar", 12000.0, 1, "Food"),
        ])
        self.cart_service = CartService(self.products)
        self.checkout = CheckoutService(self.storage, self.products, self.transactions, clock=lambda: NOW)


class CartServiceTests(_Fixture):
    def test_add_reads_catalog_stock(self):
        self.cart_service.add_to_cart(2)
        with self.assertRaises(InsufficientStockError):
            self.cart_service.add_to_cart(2)
        self.assertEqual(self.cart_service.cart.quantity_of(2), 1)

    def test_unknown_product(self):
        with self.assertRaises(ProductNotFoundError):
            self.cart_service.add_to_cart(99)

    def test_update_quantity(self):
        self.cart_service.add_to_cart(1)
        self.cart_service.update_quantity(1, 5)
        self.assertEqual(self.cart_service.cart.quantity_of(1), 5)
        with self.assertRaises(InsufficientStockError):
            self.cart_service.update_quantity(1, 21)
        self.cart_service.update_quantity(1, 0)
        self.assertTrue(self.cart_service.cart.is_empty())

    def test_update_quantity_uses_current_catalog_price(self):
        self.cart_service.add_to_cart(1, 5)
        self.products.update_product(1, "Kopi Hitam", 20000.0, 3, "Drinks", None)
        self.cart_service.update_quantity(1, 2)
        self.assertEqual(self.cart_service.get_items()[0].subtotal, 40000.0)

    def test_sync_product_trims_line_to_new_stock(self):
        self.cart_service.add_to_cart(1, 5)
        self.products.update_product(1, "Kopi Hitam", 20000.0, 3, "Drinks", None)
        dropped = self.cart_service.sync_product(self.products.get_product(1))
        self.assertEqual(dropped, 2)
        self.assertEqual(self.cart_service.cart.quantity_of(1), 3)
        self.assertEqual(self.cart_service.get_totals().subtotal, 60000.0)

    def test_totals_follow_cart(self):
        self.cart_service.add_to_cart(1, 2)
        self.assertEqual(self.cart_service.get_totals(35000).change, 2000.0)
        self.cart_service.clear_cart()
        self.assertEqual(self.cart_service.get_items(), [])


class CheckoutTests(_Fixture):
    def test_successful_checkout_records_and_decrements(self):
        self.cart_service.add_to_cart(1, 2)
        t = self.checkout.checkout(self.cart_service.cart, 35000, customer_name="  Budi ",
                                   actor={'username': 'admin', 'role': 'admin'})

        self.assertEqual(t.customer_name, "Budi")
        self.assertEqual((t.subtotal, t.tax, t.total, t.change), (30000.0, 3000.0, 33000.0, 2000.0))
        self.assertEqual(t.date, NOW)
        self.assertEqual(self.products.get_product(1).stock, 18)
        self.assertEqual(self.products.get_product(2).stock, 1)
        recorded = self.transactions.list_transactions()
        self.assertEqual(len(recorded), 1)
        self.assertEqual(recorded[0].id, t.id)
        self.assertEqual(recorded[0].items[0]['quantity'], 2)
        self.assertTrue(self.cart_service.cart.is_empty())

        audit = self.storage.read_audit()
        self.assertEqual(audit[0]['event_type'], 'checkout')
        self.assertEqual(audit[0]['username'], 'admin')

    def test_blank_customer_is_guest(self):
        self.cart_service.add_to_cart(1)
        t = self.checkout.checkout(self.cart_service.cart, 20000)
        self.assertEqual(t.customer_name, "Guest")

    def test_insufficient_cash_rejected_without_mutation(self):
        self.cart_service.add_to_cart(1, 2)
        with self.assertRaises(InsufficientCashError):
            self.checkout.checkout(self.cart_service.cart, 30000)
        self.assertEqual(self.products.get_product(1).stock, 20)
        self.assertEqual(self.transactions.list_transactions(), [])
        self.assertEqual(self.cart_service.cart.quantity_of(1), 2)

    def test_empty_cart_rejected(self):
        with self.assertRaises(EmptyCartError):
            self.checkout.checkout(Cart(), 100000)

    def test_stock_sold_elsewhere_aborts_everything(self):
        self.cart_service.add_to_cart(1, 2)
        self.cart_service.add_to_cart(2, 1)
        # Roti Bakar sells out after it was put in the cart
        self.products.update_stock(2, -1)
        with self.assertRaises(InsufficientStockError):
            self.checkout.checkout(self.cart_service.cart, 100000)
        self.assertEqual(self.products.get_product(1).stock, 20)
        self.assertEqual(self.transactions.list_transactions(), [])
        self.assertFalse(self.cart_service.cart.is_empty())

    def test_failure_while_decrementing_rolls_back_transaction(self):
        self.cart_service.add_to_cart(1, 2)
        with mock.patch.object(self.products, 'update_stock', side_effect=RuntimeError('disk full')):
            with self.assertRaises(RuntimeError):
                self.checkout.checkout(self.cart_service.cart, 35000)
        self.assertEqual(self.transactions.list_transactions(), [])
        self.assertEqual(self.products.get_product(1).stock, 20)

    def test_ids_stay_unique_within_same_millisecond(self):
        self.cart_service.add_to_cart(1)
        first = self.checkout.checkout(self.cart_service.cart, 20000)
        self.cart_service.add_to_cart(1)
        second = self.checkout.checkout(self.cart_service.cart, 20000)
        self.assertGreater(second.id, first.id)


class ProductServiceTests(unittest.TestCase):
    def setUp(self):
        self.storage = MemoryStorage()
        self.service = ProductService(ProductRepository(self.storage), audit=self.storage)

    def _values(self, **kw):
        values = {'name': 'Es Teh', 'price': 5000, 'stock': 10, 'category': 'Drinks'}
        values.update(kw)
        return values

    def test_create_assigns_next_id_and_placeholder(self):
        a = self.service.create_product(self._values())
        b = self.service.create_product(self._values(name='Es Jeruk'))
        self.assertEqual((a.id, b.id), (1, 2))
        self.assertEqual(a.image, PLACEHOLDER_IMAGE)
        self.assertEqual(self.storage.read_audit()[0]['event_type'], 'product_create')

    def test_validation(self):
        for bad in (self._values(name=' '), self._values(price=0), self._values(price='abc'),
                    self._values(stock=-1), self._values(stock='x'), self._values(category='')):
            with self.assertRaises(ValidationError):
                self.service.create_product(bad)
        self.assertEqual(self.service.list_products(), [])

    def test_update_keeps_id_and_delete(self):
        p = self.service.create_product(self._values())
        updated = self.service.update_product(p.id, self._values(price=6000, stock=3))
        self.assertEqual(updated.id, p.id)
        self.assertEqual(self.service.get_product(p.id).price, 6000.0)
        self.service.delete_product(p.id)
        self.assertIsNone(self.service.get_product(p.id))
        with self.assertRaises(ProductNotFoundError):
            self.service.delete_product(p.id)


if __name__ == '__main__':
    unittest.main()
