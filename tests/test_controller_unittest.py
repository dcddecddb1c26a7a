import os
import unittest
from datetime import datetime, timedelta
from unittest import mock
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

try:
    import controller
    PYQT_AVAILABLE = True
except Exception:
    PYQT_AVAILABLE = False

from storage import MemoryStorage
from models import Product, Transaction


class _PageStub:
    """Records whatever the controller pushes into a page."""

    def __init__(self):
        self.currency = 'IDR'
        self.calls = []

    def __getattr__(self, name):
        def record(*args):
            self.calls.append((name, args))
        return record

    def last(self, name):
        for call_name, args in reversed(self.calls):
            if call_name == name:
                return args
        return None


class _NavStub:
    def __init__(self):
        self.row = -1

    def currentRow(self):
        return self.row

    def setCurrentRow(self, row):
        self.row = row


class _SidebarStub(_PageStub):
    def __init__(self):
        super().__init__()
        self.nav = _NavStub()


class MsgBoxStub:
    Yes = 1
    No = 0

    def __init__(self):
        self.last = None
        self.answer = MsgBoxStub.Yes

    def warning(self, *args, **kwargs):
        self.last = ('warning', args, kwargs)

    def information(self, *args, **kwargs):
        self.last = ('info', args, kwargs)

    def critical(self, *args, **kwargs):
        self.last = ('crit', args, kwargs)

    def question(self, *args, **kwargs):
        return self.answer


class _DialogStub:
    shown = []

    def __init__(self, *args, **kwargs):
        _DialogStub.shown.append((args, kwargs))

    def exec_(self):
        return 1


@unittest.skipUnless(PYQT_AVAILABLE, 'PyQt5 not available in test environment')
class ControllerTests(unittest.TestCase):
    def setUp(self):
        self.storage = MemoryStorage()

        # create controller instance without Qt init
        C = controller.MainController.__new__(controller.MainController)
        C._init_services(self.storage)
        C.kasir = _PageStub()
        C.product_panel = _PageStub()
        C.history = _PageStub()
        C.user_panel = _PageStub()
        C.settings_panel = _PageStub()
        C.viz = _PageStub()
        C.sidebar = _SidebarStub()
        C.stack = _PageStub()
        C.toasts = []
        C.show_toast = lambda msg, duration_ms=2200: C.toasts.append(msg)

        C.products.replace_all([
            Product(1, "Kopi Hitam", 15000.0, 20, "Drinks"),
            Product(2, "Roti Bakar", 12000.0, 1, "Food"),
        ])
        C.users.add_user("Admin", "admin", "admin", "password")
        C.auth.login("admin", "password")

        # patch QMessageBox and the receipt pipeline
        self.msgbox = MsgBoxStub()
        self.receipt = mock.Mock()
        self.receipt.generate.return_value = '/tmp/receipt.png'
        _DialogStub.shown = []
        self._patches = [
            mock.patch.object(controller, 'QMessageBox', self.msgbox),
            mock.patch.object(controller, 'ReceiptGenerator', self.receipt),
            mock.patch.object(controller, 'ReceiptDialog', _DialogStub),
        ]
        for p in self._patches:
            p.start()

        self.C = C

    def tearDown(self):
        for p in self._patches:
            p.stop()

    def test_add_to_cart_respects_stock(self):
        self.C.add_to_cart(2)
        self.assertEqual(self.C.cart_service.cart.quantity_of(2), 1)
        # second add should not increase qty beyond stock
        self.C.add_to_cart(2)
        self.assertEqual(self.C.cart_service.cart.quantity_of(2), 1)
        self.assertEqual(self.msgbox.last[0], 'warning')
        items, totals = self.C.kasir.last('update_cart_display')
        self.assertEqual(totals['total'], 13200.0)

    def test_update_and_remove(self):
        self.C.add_to_cart(1)
        self.C.update_cart_qty(1, 3)
        self.assertEqual(self.C.cart_service.cart.quantity_of(1), 3)
        self.C.update_cart_qty(1, 0)
        self.assertTrue(self.C.cart_service.cart.is_empty())
        self.C.add_to_cart(1)
        self.C.remove_from_cart(1)
        self.assertTrue(self.C.cart_service.cart.is_empty())

    def test_clear_cart_asks_first(self):
        self.C.add_to_cart(1)
        self.msgbox.answer = MsgBoxStub.No
        self.C.clear_cart()
        self.assertFalse(self.C.cart_service.cart.is_empty())
        self.msgbox.answer = MsgBoxStub.Yes
        self.C.clear_cart()
        self.assertTrue(self.C.cart_service.cart.is_empty())

    def test_process_transaction_records_sale(self):
        self.C.add_to_cart(1)
        self.C.add_to_cart(1)
        t = self.C.process_transaction({'cash_amount': 35000.0, 'customer_name': ''})

        self.assertEqual(t.change, 2000.0)
        self.assertEqual(t.customer_name, "Guest")
        self.assertEqual(self.C.products.get_product(1).stock, 18)
        self.assertEqual(len(self.C.transactions.list_transactions()), 1)
        self.assertTrue(self.C.cart_service.cart.is_empty())
        self.assertTrue(self.receipt.generate.called)
        self.assertEqual(len(_DialogStub.shown), 1)
        checkout_entry = [e for e in self.storage.read_audit() if e['event_type'] == 'checkout'][0]
        self.assertEqual(checkout_entry['username'], 'admin')

    def test_process_transaction_short_cash(self):
        self.C.add_to_cart(1)
        self.C.add_to_cart(1)
        self.assertIsNone(self.C.process_transaction({'cash_amount': 30000.0}))
        self.assertEqual(self.msgbox.last[0], 'warning')
        self.assertEqual(self.C.products.get_product(1).stock, 20)
        self.assertEqual(self.C.transactions.list_transactions(), [])
        self.assertEqual(self.C.cart_service.cart.quantity_of(1), 2)

    def test_checkout_dialog_flow(self):
        class PayDialog(_DialogStub):
            payment_data = {'cash_amount': 20000.0, 'customer_name': 'Ani'}

            def exec_(self):
                return controller.QDialog.Accepted

        self.C.initiate_checkout()
        self.assertEqual(self.msgbox.last[0], 'warning')

        self.C.add_to_cart(1)
        with mock.patch.object(controller, 'CheckoutDialog', PayDialog):
            self.C.initiate_checkout()
        recorded = self.C.transactions.list_transactions()
        self.assertEqual([t.customer_name for t in recorded], ['Ani'])

    def test_product_crud(self):
        self.C.admin_create_item({'name': '', 'price': 5000, 'stock': 1, 'category': 'Drinks'})
        self.assertEqual(self.msgbox.last[0], 'warning')
        self.C.admin_create_item({'name': 'Es Teh', 'price': 5000, 'stock': 10, 'category': 'Drinks'})
        self.assertEqual(self.C.products.get_product(3).name, 'Es Teh')
        self.C.admin_update_item(3, {'name': 'Es Teh Manis', 'price': 6000, 'stock': 8, 'category': 'Drinks'})
        self.assertEqual(self.C.products.get_product(3).price, 6000.0)

        self.C.add_to_cart(3)
        self.C.admin_delete_item(3)
        self.assertIsNone(self.C.products.get_product(3))
        self.assertTrue(self.C.cart_service.cart.is_empty())
        events = [e['event_type'] for e in self.storage.read_audit()]
        self.assertIn('product_delete', events)

    def test_history_paging(self):
        base = datetime.now() - timedelta(hours=1)
        for i in range(12):
            self.C.transactions.create_transaction(Transaction(
                5000 + i, f"C{i}", [], 100.0, 10.0, 110.0, 110.0, 0.0, base - timedelta(minutes=i)))
        self.C.load_history()
        rows, page, total_pages = self.C.history.last('populate')
        self.assertEqual((len(rows), page, total_pages), (10, 1, 2))
        # newest first
        self.assertEqual(rows[0].id, 5000)

        self.C.change_history_page(5)
        rows, page, total_pages = self.C.history.last('populate')
        self.assertEqual((len(rows), page), (2, 2))

        self.C.filter_history({'query': 'C11', 'date': None, 'date_range': 'all'})
        rows, page, _ = self.C.history.last('populate')
        self.assertEqual([t.id for t in rows], [5011])

    def test_print_receipt_from_history(self):
        self.C.add_to_cart(1)
        t = self.C.process_transaction({'cash_amount': 20000.0})
        self.receipt.generate.reset_mock()
        self.C.show_receipt(self.C.transactions.get_transaction(t.id))
        args, _ = self.receipt.generate.call_args
        self.assertEqual(args[0].id, t.id)

    def test_detail_for_checkout_transaction(self):
        self.C.add_to_cart(1)
        t = self.C.process_transaction({'cash_amount': 20000.0})
        self.assertGreater(t.id, 2 ** 31)

        class DetailStub(_DialogStub):
            def __init__(self, transaction, currency):
                super().__init__(transaction, currency)
                self.print_requested = mock.Mock()

        _DialogStub.shown = []
        with mock.patch.object(controller, 'TransactionDetailDialog', DetailStub):
            self.C.show_transaction_detail(t.id)
        self.assertEqual(_DialogStub.shown[0][0][0].id, t.id)

    def test_edit_product_refreshes_cart_line(self):
        self.C.add_to_cart(1)
        self.C.update_cart_qty(1, 5)
        self.C.admin_update_item(1, {'name': 'Kopi Hitam', 'price': 20000, 'stock': 3, 'category': 'Drinks'})
        self.assertEqual(self.C.cart_service.cart.quantity_of(1), 3)
        self.assertEqual(self.msgbox.last[0], 'warning')
        items, totals = self.C.kasir.last('update_cart_display')
        self.assertEqual(totals['subtotal'], 60000.0)

        self.C.update_cart_qty(1, 2)
        self.assertEqual(self.C.cart_service.get_items()[0].subtotal, 40000.0)

    def test_user_management(self):
        self.C.admin_create_user({'name': 'Budi', 'username': 'budi', 'role': 'cashier', 'password': 'kasir123'})
        budi = self.C.users.get_by_username('budi')
        self.assertIsNotNone(budi)
        self.C.admin_create_user({'name': 'Dup', 'username': 'BUDI', 'role': 'cashier', 'password': 'kasir123'})
        self.assertEqual(self.msgbox.last[0], 'warning')

        admin = self.C.users.get_by_username('admin')
        self.C.admin_delete_user(admin.id)
        self.assertIsNotNone(self.C.users.get_user(admin.id))
        self.C.admin_delete_user(budi.id)
        self.assertIsNone(self.C.users.get_user(budi.id))

    def test_save_settings(self):
        self.assertFalse(self.C.save_settings('store', {'name': 'X', 'address': 'Y', 'phone': '1', 'email': 'bad'}))
        self.assertEqual(self.msgbox.last[0], 'warning')
        self.assertTrue(self.C.save_settings('app', {'default_tax': 10, 'currency': 'USD', 'theme': 'dark'}))
        self.assertEqual(self.C.currency(), 'USD')
        self.assertEqual(self.C.kasir.currency, 'USD')

    def test_login_retries_until_valid(self):
        attempts = iter([('admin', 'wrongpass'), ('admin', 'password')])

        class LoginStub(_DialogStub):
            def exec_(self):
                return controller.QDialog.Accepted

            def credentials(self):
                return next(attempts)

        self.C.auth.logout()
        with mock.patch.object(controller, 'LoginDialog', LoginStub):
            self.assertTrue(self.C.login())
        self.assertEqual(self.C.session, {'username': 'admin', 'role': 'admin'})
        self.assertEqual(self.C.sidebar.nav.row, controller.PAGE_CASHIER)

    def test_login_cancelled(self):
        class CancelStub(_DialogStub):
            def exec_(self):
                return controller.QDialog.Rejected

        self.C.auth.logout()
        with mock.patch.object(controller, 'LoginDialog', CancelStub):
            self.assertFalse(self.C.login())
        self.assertFalse(self.C.auth.is_authenticated())


if __name__ == '__main__':
    unittest.main()
