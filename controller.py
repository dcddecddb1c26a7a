from PyQt5.QtWidgets import (
    QApplication,
    QMainWindow,
    QMessageBox,
    QStackedWidget,
    QDialog,
    QLabel,
    QWidget,
    QHBoxLayout,
)
from PyQt5.QtCore import QTimer, Qt
from view import (
    KasirPage, CheckoutDialog, ReceiptDialog, LoginDialog, Sidebar, ProductPanel,
    TransactionHistoryPanel, TransactionDetailDialog, UserPanel, SettingsPanel, STYLESHEETS,
)
from datavisualization import VizPanel
from storage import SQLiteStorage
from products import ProductRepository
from transactions import TransactionRepository
from users import UserRepository
from services import (
    ProductService, CartService, CheckoutService, UserService, AuthService, SettingsService,
)
from receipt import ReceiptGenerator
from models import ALL_CATEGORIES, PosError, AuthenticationError, format_money
import queries
import os
import shutil

PAGE_CASHIER, PAGE_PRODUCTS, PAGE_HISTORY, PAGE_REPORTS, PAGE_USERS, PAGE_SETTINGS = range(6)


class MainController(QMainWindow):
    def __init__(self, storage=None):
        super().__init__()
        self.setWindowTitle("UMKM POS")
        self.resize(1280, 800)

        self._init_services(storage)

        # Pages
        self.sidebar = Sidebar()
        self.stack = QStackedWidget()
        self.kasir = KasirPage()
        self.product_panel = ProductPanel()
        self.history = TransactionHistoryPanel()
        self.viz = VizPanel(self.transactions.list_transactions, self.currency)
        self.user_panel = UserPanel()
        self.settings_panel = SettingsPanel()

        for page in (self.kasir, self.product_panel, self.history, self.viz,
                     self.user_panel, self.settings_panel):
            self.stack.addWidget(page)

        central = QWidget()
        layout = QHBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.sidebar)
        layout.addWidget(self.stack, 1)
        central.setLayout(layout)
        self.setCentralWidget(central)

        # Connect Signals
        self.sidebar.page_selected.connect(self.navigate)
        self.sidebar.logout_clicked.connect(self.logout)

        self.kasir.category_selected.connect(self.filter_category)
        self.kasir.search_query.connect(self.filter_search)
        self.kasir.item_added.connect(self.add_to_cart)
        self.kasir.update_qty.connect(self.update_cart_qty)
        self.kasir.remove_item.connect(self.remove_from_cart)
        self.kasir.clear_cart_requested.connect(self.clear_cart)
        self.kasir.checkout_requested.connect(self.initiate_checkout)

        self.product_panel.add_item.connect(self.admin_create_item)
        self.product_panel.edit_item.connect(self.admin_update_item)
        self.product_panel.delete_item.connect(self.admin_delete_item)
        self.product_panel.search_query.connect(self.search_product_table)

        self.history.filter_requested.connect(self.filter_history)
        self.history.page_changed.connect(self.change_history_page)
        self.history.detail_requested.connect(self.show_transaction_detail)

        self.user_panel.add_user.connect(self.admin_create_user)
        self.user_panel.edit_user.connect(self.admin_update_user)
        self.user_panel.delete_user.connect(self.admin_delete_user)
        self.user_panel.search_query.connect(self.search_user_table)

        self.settings_panel.store_saved.connect(lambda v: self.save_settings('store', v))
        self.settings_panel.receipt_saved.connect(lambda v: self.save_settings('receipt', v))
        self.settings_panel.app_saved.connect(lambda v: self.save_settings('app', v))

    def _init_services(self, storage=None):
        """Wire repositories and services over one storage backend."""
        self.storage = storage if storage is not None else SQLiteStorage()
        self.products = ProductRepository(self.storage)
        self.transactions = TransactionRepository(self.storage)
        self.users = UserRepository(self.storage)

        self.product_service = ProductService(self.products, audit=self.storage)
        self.cart_service = CartService(self.products)
        self.checkout_service = CheckoutService(self.storage, self.products, self.transactions)
        self.user_service = UserService(self.users, audit=self.storage)
        self.auth = AuthService(self.storage, self.users)
        self.settings = SettingsService(self.storage)

        # View state
        self.current_cat = ALL_CATEGORIES
        self.search_text = ""
        self.product_query = ""
        self.user_query = ""
        self.history_filters = {'query': "", 'date': None, 'date_range': "all"}
        self.history_page = 1

    def currency(self):
        return self.settings.get_settings()['app'].get('currency', 'IDR')

    @property
    def session(self):
        return self.auth.current_user()

    # --- AUTH ---
    def start(self):
        """Show the login dialog until it succeeds or is cancelled."""
        if not self.login():
            return False
        self.show()
        return True

    def login(self):
        while True:
            dlg = LoginDialog()
            if dlg.exec_() != QDialog.Accepted:
                return False
            username, password = dlg.credentials()
            try:
                session = self.auth.login(username, password)
            except AuthenticationError as e:
                QMessageBox.warning(self, "Login Failed", str(e))
                continue
            self.sidebar.set_user(session)
            self.apply_theme()
            self.refresh_all()
            self.navigate(PAGE_CASHIER)
            return True

    def logout(self):
        resp = QMessageBox.question(self, "Logout", "Are you sure you want to log out?",
                                    QMessageBox.Yes | QMessageBox.No)
        if resp != QMessageBox.Yes:
            return
        self.cart_service.clear_cart()
        self.auth.logout()
        self.sidebar.set_user(None)
        self.hide()
        if self.login():
            self.show()
        else:
            self.close()

    # --- NAV ---
    def navigate(self, index):
        if self.sidebar.nav.currentRow() != index:
            # re-enters navigate through the currentRowChanged signal
            self.sidebar.nav.setCurrentRow(index)
            return
        self.stack.setCurrentIndex(index)
        if index == PAGE_CASHIER:
            self.load_items()
        elif index == PAGE_PRODUCTS:
            self.load_product_table()
        elif index == PAGE_HISTORY:
            self.load_history()
        elif index == PAGE_REPORTS:
            self.viz.refresh_charts()
        elif index == PAGE_USERS:
            self.load_users()
        elif index == PAGE_SETTINGS:
            self.settings_panel.load(self.settings.get_settings())

    def refresh_all(self):
        currency = self.currency()
        self.kasir.currency = currency
        self.product_panel.currency = currency
        self.history.currency = currency
        self.load_items()
        self.update_cart_ui()

    def apply_theme(self):
        theme = self.settings.get_settings()['app'].get('theme', 'light')
        app = QApplication.instance()
        if app is not None:
            app.setStyleSheet(STYLESHEETS.get(theme, STYLESHEETS['light']))

    # --- DATA ---
    def load_items(self):
        items = queries.filter_products(self.products.list_products(), self.search_text, self.current_cat)
        self.kasir.update_grid(items)

    def filter_category(self, category):
        self.current_cat = category
        self.load_items()

    def filter_search(self, text):
        self.search_text = text
        self.load_items()

    # --- CART LOGIC ---
    def add_to_cart(self, product_id):
        try:
            self.cart_service.add_to_cart(product_id)
        except PosError as e:
            QMessageBox.warning(self, "Stock Limit", str(e))
            return
        self.update_cart_ui()

    def update_cart_qty(self, product_id, new_qty):
        try:
            self.cart_service.update_quantity(product_id, new_qty)
        except PosError as e:
            QMessageBox.warning(self, "Stock Limit", str(e))
            return
        self.update_cart_ui()

    def remove_from_cart(self, product_id):
        self.cart_service.remove_from_cart(product_id)
        self.update_cart_ui()

    def clear_cart(self):
        if self.cart_service.cart.is_empty():
            self.show_toast("Cart is already empty.")
            return
        resp = QMessageBox.question(self, "Clear Cart", "Are you sure you want to clear the cart?",
                                    QMessageBox.Yes | QMessageBox.No)
        if resp != QMessageBox.Yes:
            return
        self.cart_service.clear_cart()
        self.update_cart_ui()
        self.show_toast("Cart cleared.")

    def update_cart_ui(self):
        totals = self.cart_service.get_totals().as_dict()
        self.kasir.update_cart_display(self.cart_service.get_items(), totals)

    def show_toast(self, message, duration_ms=2200):
        """Show a temporary non-blocking toast label over the main window."""
        lbl = QLabel(message, self)
        lbl.setObjectName('ToastLabel')
        lbl.setStyleSheet("""
            QLabel#ToastLabel {
                background-color: rgba(0,0,0,0.78);
                color: white;
                padding: 10px 14px;
                border-radius: 8px;
                font-size: 10pt;
            }
        """)
        lbl.setAttribute(Qt.WA_TransparentForMouseEvents)
        lbl.adjustSize()
        # place above bottom-right, with margin
        x = max(10, self.width() - lbl.width() - 20)
        y = max(10, self.height() - lbl.height() - 100)
        lbl.move(x, y)
        lbl.show()
        lbl.raise_()
        QTimer.singleShot(duration_ms, lbl.deleteLater)

    # --- CHECKOUT ---
    def initiate_checkout(self):
        if self.cart_service.cart.is_empty():
            QMessageBox.warning(self, "Empty Cart", "Add products to the cart first.")
            return
        totals = self.cart_service.get_totals()
        dlg = CheckoutDialog(totals.total, self.currency())
        if dlg.exec_() == QDialog.Accepted:
            self.process_transaction(dlg.payment_data)

    def process_transaction(self, pay_data):
        """Record the sale, then render and show its receipt. Returns the transaction or None."""
        try:
            transaction = self.checkout_service.checkout(
                self.cart_service.cart,
                pay_data['cash_amount'],
                customer_name=pay_data.get('customer_name'),
                actor=self.session,
            )
        except PosError as e:
            QMessageBox.warning(self, "Checkout Failed", str(e))
            return None
        except Exception as e:
            QMessageBox.critical(self, "Error", f"Transaction failed: {e}")
            return None

        self.update_cart_ui()
        self.load_items() # Refresh stock display
        currency = self.currency()
        self.show_toast(f"Transaction #{transaction.id} complete. "
                        f"Change: {format_money(transaction.change, currency)}")
        self.show_receipt(transaction)
        return transaction

    def show_receipt(self, transaction):
        try:
            png = ReceiptGenerator.generate(transaction, self.settings.get_settings())
        except OSError as e:
            QMessageBox.critical(self, "Receipt", f"Could not write receipt: {e}")
            return None
        ReceiptDialog(png_path=png).exec_()
        return png

    # --- HISTORY ---
    def load_history(self):
        found = queries.filter_transactions(self.transactions.list_transactions(), **self.history_filters)
        found.sort(key=lambda t: t.date, reverse=True)
        page_items, total_pages, self.history_page = queries.paginate(found, self.history_page)
        self.history.populate(page_items, self.history_page, total_pages)

    def filter_history(self, filters):
        self.history_filters = filters
        self.history_page = 1
        self.load_history()

    def change_history_page(self, page):
        self.history_page = page
        self.load_history()

    def show_transaction_detail(self, transaction_id):
        transaction = self.transactions.get_transaction(transaction_id)
        if transaction is None:
            QMessageBox.warning(self, "Not Found", f"Transaction #{transaction_id} not found")
            return
        dlg = TransactionDetailDialog(transaction, self.currency())
        dlg.print_requested.connect(lambda _id, t=transaction: self.show_receipt(t))
        dlg.exec_()

    # --- PRODUCTS ---
    def load_product_table(self):
        self.product_panel.populate_items(
            queries.search_products(self.product_service.list_products(), self.product_query))

    def search_product_table(self, query):
        self.product_query = query
        self.load_product_table()

    def admin_create_item(self, payload):
        payload = dict(payload)
        if payload.get('image'):
            payload['image'] = self._save_image_file(payload['image'])
        try:
            product = self.product_service.create_product(payload, actor=self.session)
        except PosError as e:
            QMessageBox.warning(self, "Error", f"Failed to add product: {e}")
            return
        self.show_toast(f"Product {product.name} added")
        self.load_product_table()
        self.load_items()

    def admin_update_item(self, product_id, payload):
        payload = dict(payload)
        if payload.get('image'):
            payload['image'] = self._save_image_file(payload['image'])
        try:
            product = self.product_service.update_product(product_id, payload, actor=self.session)
        except PosError as e:
            QMessageBox.warning(self, "Error", f"Failed to update product: {e}")
            return
        dropped = self.cart_service.sync_product(product)
        self.update_cart_ui()
        if dropped:
            QMessageBox.warning(self, "Stock Limit",
                                f"Cart reduced by {dropped} x {product.name}: only {product.stock} left in stock")
        self.show_toast(f"Product {product.name} updated")
        self.load_product_table()
        self.load_items()

    def admin_delete_item(self, product_id):
        try:
            self.product_service.delete_product(product_id, actor=self.session)
        except PosError as e:
            QMessageBox.warning(self, "Error", f"Failed to delete product: {e}")
            return
        # a deleted product cannot stay in the open cart
        self.cart_service.remove_from_cart(product_id)
        self.update_cart_ui()
        self.show_toast("Product deleted")
        self.load_product_table()
        self.load_items()

    def _save_image_file(self, src_path):
        """Copy a picked image into assets/images and return the stored path."""
        dest_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'assets', 'images')
        if not os.path.exists(src_path) or os.path.dirname(os.path.abspath(src_path)) == dest_dir:
            return src_path
        os.makedirs(dest_dir, exist_ok=True)
        dest_path = os.path.join(dest_dir, os.path.basename(src_path))
        try:
            shutil.copy(src_path, dest_path)
        except OSError as e:
            print(f"Could not copy image {src_path}: {e}")
            return src_path
        return dest_path

    # --- USERS ---
    def load_users(self):
        self.user_panel.populate_users(queries.search_users(self.user_service.list_users(), self.user_query))

    def search_user_table(self, query):
        self.user_query = query
        self.load_users()

    def admin_create_user(self, payload):
        try:
            user = self.user_service.create_user(payload, actor=self.session)
        except PosError as e:
            QMessageBox.warning(self, "Error", f"Failed to add user: {e}")
            return
        self.show_toast(f"User {user.username} added")
        self.load_users()

    def admin_update_user(self, user_id, payload):
        try:
            user = self.user_service.update_user(user_id, payload, actor=self.session)
        except PosError as e:
            QMessageBox.warning(self, "Error", f"Failed to update user: {e}")
            return
        self.show_toast(f"User {user.username} updated")
        self.load_users()

    def admin_delete_user(self, user_id):
        current = self.session or {}
        user = self.users.get_user(user_id)
        if user is not None and user.username == current.get('username'):
            QMessageBox.warning(self, "Error", "You cannot delete the account you are logged in with")
            return
        try:
            self.user_service.delete_user(user_id, actor=self.session)
        except PosError as e:
            QMessageBox.warning(self, "Error", f"Failed to delete user: {e}")
            return
        self.show_toast("User deleted")
        self.load_users()

    # --- SETTINGS ---
    def save_settings(self, section, values):
        savers = {
            'store': self.settings.save_store,
            'receipt': self.settings.save_receipt,
            'app': self.settings.save_app,
        }
        try:
            savers[section](values, actor=self.session)
        except PosError as e:
            QMessageBox.warning(self, "Invalid Settings", str(e))
            return False
        if section == 'app':
            self.apply_theme()
            self.refresh_all()
        self.show_toast("Settings saved")
        return True
