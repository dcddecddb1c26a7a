from PyQt5.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
    QGridLayout, QScrollArea, QFrame, QLineEdit, QListWidget,
    QHeaderView, QTableWidget, QTableWidgetItem, QDialog,
    QMessageBox, QSizePolicy, QComboBox, QTabWidget, QDateEdit,
    QFileDialog, QSpinBox, QDoubleSpinBox, QFormLayout, QCheckBox,
    QAbstractItemView,
)
from PyQt5.QtCore import Qt, pyqtSignal, QDate
from PyQt5.QtGui import QPixmap, QFont, QBrush, QColor
import os

from models import (
    CATEGORIES, ALL_CATEGORIES, ROLES, PLACEHOLDER_IMAGE, CURRENCY_SYMBOLS, format_money,
)
from services import calculate_change, TAX_RATE, THEMES
from queries import DATE_RANGES

NAV_PAGES = ["Cashier", "Products", "History", "Reports", "Users", "Settings"]

DATE_RANGE_LABELS = {"all": "All", "today": "Today", "week": "This week", "month": "This month"}

STYLESHEETS = {
    'light': """
        QWidget { font-size: 10pt; }
        QLabel#PageTitle { font-size: 18pt; font-weight: bold; }
        QLabel#KpiLabel { border: 1px solid #D0D5DD; border-radius: 6px; padding: 10px; font-size: 12pt; }
        QFrame#ProductTile { border: 1px solid #D0D5DD; border-radius: 8px; background: white; }
        QListWidget#Sidebar { background: #F8FAFC; font-size: 12pt; }
    """,
    'dark': """
        QWidget { font-size: 10pt; background: #1F2937; color: #F9FAFB; }
        QLabel#PageTitle { font-size: 18pt; font-weight: bold; }
        QLabel#KpiLabel { border: 1px solid #4B5563; border-radius: 6px; padding: 10px; font-size: 12pt; }
        QFrame#ProductTile { border: 1px solid #4B5563; border-radius: 8px; background: #111827; }
        QListWidget#Sidebar { background: #111827; font-size: 12pt; }
        QLineEdit, QComboBox, QSpinBox, QDoubleSpinBox, QDateEdit, QTableWidget { background: #374151; }
    """,
}

TAX_LABEL = f"Tax ({int(round(TAX_RATE * 100))}%)"


def _title(text):
    lbl = QLabel(text)
    lbl.setObjectName("PageTitle")
    return lbl


def _readonly_table(headers):
    table = QTableWidget()
    table.setColumnCount(len(headers))
    table.setHorizontalHeaderLabels(headers)
    table.setEditTriggers(QAbstractItemView.NoEditTriggers)
    table.setSelectionBehavior(QAbstractItemView.SelectRows)
    table.setSelectionMode(QAbstractItemView.SingleSelection)
    table.verticalHeader().setVisible(False)
    table.horizontalHeader().setSectionResizeMode(1, QHeaderView.Stretch)
    return table


def _selected_id(table):
    sel = table.currentRow()
    if sel < 0:
        return None
    item = table.item(sel, 0)
    return int(item.text().lstrip('#')) if item else None


# --- CUSTOM WIDGETS ---

class ProductTile(QFrame):
    clicked = pyqtSignal(int) # emits product id

    def __init__(self, product, currency='IDR'):
        super().__init__()
        self.setObjectName("ProductTile")
        self.product_id = product.id
        self.stock = product.stock
        self.setFixedSize(180, 240)
        self.setSizePolicy(QSizePolicy.Fixed, QSizePolicy.Fixed)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)

        self.img_lbl = QLabel()
        self.img_lbl.setAlignment(Qt.AlignCenter)
        self.img_lbl.setFixedHeight(110)

        info_layout = QVBoxLayout()
        info_layout.setContentsMargins(10, 5, 10, 10)

        name_lbl = QLabel(product.name)
        name_lbl.setWordWrap(True)
        name_lbl.setFont(QFont("Segoe UI", 10, QFont.Bold))
        price_lbl = QLabel(format_money(product.price, currency))
        stock_lbl = QLabel(f"Stock: {self.stock}")

        info_layout.addWidget(name_lbl)
        info_layout.addWidget(price_lbl)
        info_layout.addWidget(stock_lbl)

        layout.addWidget(self.img_lbl)
        layout.addLayout(info_layout)
        self.setLayout(layout)

        img_path = product.image
        if img_path and img_path != PLACEHOLDER_IMAGE and os.path.exists(img_path):
            pix = QPixmap(img_path)
            if not pix.isNull():
                self.img_lbl.setPixmap(pix.scaled(170, 110, Qt.KeepAspectRatio, Qt.SmoothTransformation))
        else:
            self.img_lbl.setText(product.category)

        if self.stock <= 0:
            self.setEnabled(False)
            stock_lbl.setText("OUT OF STOCK")
            stock_lbl.setStyleSheet("color: red;")

    def mousePressEvent(self, event):
        if self.stock > 0:
            self.clicked.emit(self.product_id)


class LoginDialog(QDialog):
    """Username/password prompt shown before the main window."""
    def __init__(self):
        super().__init__()
        self.setWindowTitle("UMKM POS - Login")
        self.setFixedSize(380, 220)
        layout = QVBoxLayout()

        header = QLabel("Please log in to continue")
        header.setAlignment(Qt.AlignCenter)

        form = QFormLayout()
        self.input_user = QLineEdit()
        self.input_user.setPlaceholderText("Enter username")
        self.input_pass = QLineEdit()
        self.input_pass.setPlaceholderText("Enter password")
        self.input_pass.setEchoMode(QLineEdit.Password)
        form.addRow("Username:", self.input_user)
        form.addRow("Password:", self.input_pass)

        btns = QHBoxLayout()
        btn_ok = QPushButton("Login")
        btn_cancel = QPushButton("Quit")
        btn_ok.setDefault(True)
        btn_ok.clicked.connect(self._on_ok)
        btn_cancel.clicked.connect(self.reject)
        btns.addWidget(btn_ok)
        btns.addWidget(btn_cancel)

        hint = QLabel("Demo credentials: admin / password")
        hint.setStyleSheet("color: gray;")
        hint.setAlignment(Qt.AlignCenter)

        layout.addWidget(header)
        layout.addLayout(form)
        layout.addLayout(btns)
        layout.addWidget(hint)
        self.setLayout(layout)

    def credentials(self):
        return self.input_user.text().strip(), self.input_pass.text()

    def _on_ok(self):
        if not self.input_user.text().strip():
            QMessageBox.warning(self, "Error", "Username is required")
            return
        if len(self.input_pass.text()) < 6:
            QMessageBox.warning(self, "Error", "Password must be at least 6 characters")
            return
        self.accept()


class Sidebar(QWidget):
    page_selected = pyqtSignal(int)
    logout_clicked = pyqtSignal()

    def __init__(self):
        super().__init__()
        self.setFixedWidth(200)
        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)

        brand = QLabel("<b>UMKM POS</b>")
        brand.setAlignment(Qt.AlignCenter)
        brand.setFont(QFont("Segoe UI", 14))

        self.nav = QListWidget()
        self.nav.setObjectName("Sidebar")
        self.nav.addItems(NAV_PAGES)
        self.nav.currentRowChanged.connect(self.page_selected.emit)

        self.lbl_user = QLabel("")
        self.lbl_user.setAlignment(Qt.AlignCenter)
        btn_logout = QPushButton("Logout")
        btn_logout.clicked.connect(self.logout_clicked.emit)

        layout.addWidget(brand)
        layout.addWidget(self.nav, 1)
        layout.addWidget(self.lbl_user)
        layout.addWidget(btn_logout)
        self.setLayout(layout)

    def set_user(self, session):
        if session:
            self.lbl_user.setText(f"{session.get('username')} ({session.get('role')})")
        else:
            self.lbl_user.setText("")


# --- PAGES ---

class KasirPage(QWidget):
    # Signals to Controller
    category_selected = pyqtSignal(str)
    search_query = pyqtSignal(str)
    item_added = pyqtSignal(int) # product id
    update_qty = pyqtSignal(int, int) # product id, new quantity
    remove_item = pyqtSignal(int)
    clear_cart_requested = pyqtSignal()
    checkout_requested = pyqtSignal()

    def __init__(self):
        super().__init__()
        self.currency = 'IDR'
        main_layout = QHBoxLayout()

        # Left side: search, categories, product grid
        left_vbox = QVBoxLayout()
        left_vbox.addWidget(_title("Cashier"))

        top = QHBoxLayout()
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search products...")
        self.search_input.textChanged.connect(self.search_query.emit)
        top.addWidget(self.search_input, 1)

        self.cat_btns = []
        for cat in [ALL_CATEGORIES] + CATEGORIES:
            btn = QPushButton(cat)
            btn.setCheckable(True)
            btn.setChecked(cat == ALL_CATEGORIES)
            btn.clicked.connect(lambda ch, c=cat: self._on_category(c))
            top.addWidget(btn)
            self.cat_btns.append(btn)

        self.grid_layout = QGridLayout()
        self.grid_layout.setSpacing(16)
        grid_widget = QWidget()
        grid_widget.setLayout(self.grid_layout)
        grid_scroll = QScrollArea()
        grid_scroll.setWidgetResizable(True)
        grid_scroll.setWidget(grid_widget)

        self.lbl_empty = QLabel("No products found")
        self.lbl_empty.setAlignment(Qt.AlignCenter)
        self.lbl_empty.hide()

        left_vbox.addLayout(top)
        left_vbox.addWidget(self.lbl_empty)
        left_vbox.addWidget(grid_scroll, 1)

        # Right side: cart
        self.cart_panel = QWidget()
        self.cart_panel.setMinimumWidth(420)
        cart_layout = QVBoxLayout()

        cart_head = QHBoxLayout()
        lbl_cart = QLabel("Cart")
        lbl_cart.setFont(QFont("Segoe UI", 16, QFont.Bold))
        self.btn_clear = QPushButton("Clear All")
        self.btn_clear.clicked.connect(self.clear_cart_requested.emit)
        cart_head.addWidget(lbl_cart)
        cart_head.addStretch()
        cart_head.addWidget(self.btn_clear)

        self.cart_table = QTableWidget()
        self.cart_table.setColumnCount(4)
        self.cart_table.setHorizontalHeaderLabels(["Item", "Qty", "Subtotal", ""])
        self.cart_table.horizontalHeader().setSectionResizeMode(0, QHeaderView.Stretch)
        self.cart_table.horizontalHeader().setSectionResizeMode(1, QHeaderView.ResizeToContents)
        self.cart_table.horizontalHeader().setSectionResizeMode(2, QHeaderView.ResizeToContents)
        self.cart_table.horizontalHeader().setSectionResizeMode(3, QHeaderView.Fixed)
        self.cart_table.setColumnWidth(3, 50)
        self.cart_table.verticalHeader().setVisible(False)

        self.lbl_subtotal = QLabel()
        self.lbl_tax = QLabel()
        self.lbl_total = QLabel()
        self.lbl_total.setStyleSheet("font-size: 16pt; font-weight: bold; color: #27AE60;")

        self.btn_checkout = QPushButton("Pay")
        self.btn_checkout.setMinimumHeight(44)
        self.btn_checkout.clicked.connect(self.checkout_requested.emit)

        cart_layout.addLayout(cart_head)
        cart_layout.addWidget(self.cart_table)
        cart_layout.addWidget(self.lbl_subtotal)
        cart_layout.addWidget(self.lbl_tax)
        cart_layout.addWidget(self.lbl_total)
        cart_layout.addWidget(self.btn_checkout)
        self.cart_panel.setLayout(cart_layout)

        main_layout.addLayout(left_vbox, 1)
        main_layout.addWidget(self.cart_panel, 0)
        self.setLayout(main_layout)
        self.update_cart_display([], {'subtotal': 0.0, 'tax': 0.0, 'total': 0.0})

    def _on_category(self, category):
        for btn in self.cat_btns:
            btn.setChecked(btn.text() == category)
        self.category_selected.emit(category)

    def update_grid(self, products, columns=4):
        for i in reversed(range(self.grid_layout.count())):
            self.grid_layout.itemAt(i).widget().setParent(None)
        self.lbl_empty.setVisible(not products)

        row, col = 0, 0
        for product in products:
            tile = ProductTile(product, self.currency)
            tile.clicked.connect(self.item_added.emit)
            self.grid_layout.addWidget(tile, row, col)
            col += 1
            if col >= columns:
                col = 0
                row += 1

    def update_cart_display(self, cart_items, totals):
        self.cart_table.setRowCount(0)
        self.cart_table.setRowCount(len(cart_items))

        for row, item in enumerate(cart_items):
            self.cart_table.setItem(row, 0, QTableWidgetItem(item.name))

            qty_widget = QWidget()
            qty_lay = QHBoxLayout()
            qty_lay.setContentsMargins(0, 0, 0, 0)
            btn_minus = QPushButton("-")
            btn_minus.setFixedSize(28, 28)
            btn_minus.clicked.connect(lambda ch, i=item.id, q=item.quantity: self.update_qty.emit(i, q - 1))
            lbl_q = QLabel(str(item.quantity))
            lbl_q.setFixedWidth(32)
            lbl_q.setAlignment(Qt.AlignCenter)
            btn_plus = QPushButton("+")
            btn_plus.setFixedSize(28, 28)
            btn_plus.clicked.connect(lambda ch, i=item.id, q=item.quantity: self.update_qty.emit(i, q + 1))
            qty_lay.addWidget(btn_minus)
            qty_lay.addWidget(lbl_q)
            qty_lay.addWidget(btn_plus)
            qty_widget.setLayout(qty_lay)
            self.cart_table.setCellWidget(row, 1, qty_widget)

            self.cart_table.setItem(row, 2, QTableWidgetItem(format_money(item.subtotal, self.currency)))

            btn_rem = QPushButton("x")
            btn_rem.setStyleSheet("background-color: #E74C3C; color: white;")
            btn_rem.clicked.connect(lambda ch, i=item.id: self.remove_item.emit(i))
            self.cart_table.setCellWidget(row, 3, btn_rem)

        self.lbl_subtotal.setText(f"Subtotal: {format_money(totals['subtotal'], self.currency)}")
        self.lbl_tax.setText(f"{TAX_LABEL}: {format_money(totals['tax'], self.currency)}")
        self.lbl_total.setText(f"Total: {format_money(totals['total'], self.currency)}")
        self.btn_checkout.setEnabled(bool(cart_items))
        self.btn_clear.setEnabled(bool(cart_items))


class CheckoutDialog(QDialog):
    """Payment dialog: optional customer name, cash amount and a live change preview."""
    def __init__(self, total_amount, currency='IDR'):
        super().__init__()
        self.setWindowTitle("Payment")
        self.setFixedSize(440, 320)
        self.total = total_amount
        self.currency = currency
        self.payment_data = None

        layout = QVBoxLayout()
        form = QFormLayout()
        self.input_customer = QLineEdit()
        self.input_customer.setPlaceholderText("Customer name (optional)")
        self.input_cash = QLineEdit()
        self.input_cash.setPlaceholderText("Enter cash amount")
        self.input_cash.textChanged.connect(self._refresh_change)
        form.addRow("Customer:", self.input_customer)
        form.addRow("Cash:", self.input_cash)

        self.lbl_total = QLabel(f"Total: {format_money(self.total, currency)}")
        self.lbl_total.setStyleSheet("font-size: 14pt; font-weight: bold;")
        self.lbl_paid = QLabel()
        self.lbl_change = QLabel()

        btns = QHBoxLayout()
        btn_cancel = QPushButton("Cancel")
        btn_cancel.clicked.connect(self.reject)
        self.btn_pay = QPushButton("Complete")
        self.btn_pay.setStyleSheet("background-color: #27AE60; color: white; padding: 8px;")
        self.btn_pay.clicked.connect(self.validate)
        btns.addStretch()
        btns.addWidget(btn_cancel)
        btns.addWidget(self.btn_pay)

        layout.addLayout(form)
        layout.addWidget(self.lbl_total)
        layout.addWidget(self.lbl_paid)
        layout.addWidget(self.lbl_change)
        layout.addStretch()
        layout.addLayout(btns)
        self.setLayout(layout)
        self._refresh_change()

    def cash_amount(self):
        try:
            return float(self.input_cash.text())
        except ValueError:
            return None

    def _refresh_change(self):
        cash = self.cash_amount()
        paid = cash if cash is not None else 0.0
        self.lbl_paid.setText(f"Paid: {format_money(paid, self.currency)}")
        self.lbl_change.setText(f"Change: {format_money(calculate_change(paid, self.total), self.currency)}")
        self.btn_pay.setEnabled(cash is not None and cash >= self.total)

    def validate(self):
        cash = self.cash_amount()
        if cash is None:
            QMessageBox.warning(self, "Error", "Invalid amount.")
            return
        if cash < self.total:
            QMessageBox.warning(self, "Insufficient Payment", "Cash amount does not cover the purchase total.")
            return
        self.payment_data = {
            'customer_name': self.input_customer.text().strip(),
            'cash_amount': cash,
        }
        self.accept()


class ReceiptDialog(QDialog):
    def __init__(self, png_path=None):
        super().__init__()
        self.setWindowTitle("Receipt")
        self.setMinimumSize(420, 640)
        layout = QVBoxLayout()

        lbl = QLabel("Receipt preview not available")
        if png_path and os.path.exists(png_path):
            pm = QPixmap(png_path)
            if not pm.isNull():
                lbl.setPixmap(pm.scaled(380, 560, Qt.KeepAspectRatio, Qt.SmoothTransformation))
        layout.addWidget(lbl)

        path_lbl = QLabel(png_path or "")
        path_lbl.setStyleSheet("color: gray;")
        path_lbl.setWordWrap(True)
        layout.addWidget(path_lbl)

        btn_close = QPushButton("Close")
        btn_close.clicked.connect(self.accept)
        layout.addWidget(btn_close)
        self.setLayout(layout)


class ProductEditorDialog(QDialog):
    """Dialog to add/edit a product, including picking an image file."""
    def __init__(self, categories=None, product=None):
        super().__init__()
        self.setWindowTitle("Edit Product" if product else "Add Product")
        self.setMinimumSize(480, 300)
        self.product = product
        self.categories = categories or CATEGORIES
        self.values = None

        layout = QVBoxLayout()
        form = QFormLayout()

        self.input_name = QLineEdit()
        self.input_price = QDoubleSpinBox()
        self.input_price.setMaximum(1000000000)
        self.input_price.setDecimals(2)
        self.input_stock = QSpinBox()
        self.input_stock.setMaximum(1000000)
        self.input_cat = QComboBox()
        self.input_cat.addItems(self.categories)

        img_h = QHBoxLayout()
        self.input_img = QLineEdit()
        btn_browse = QPushButton("Browse")
        btn_browse.clicked.connect(self.browse_image)
        img_h.addWidget(self.input_img)
        img_h.addWidget(btn_browse)

        form.addRow("Name:", self.input_name)
        form.addRow("Price:", self.input_price)
        form.addRow("Stock:", self.input_stock)
        form.addRow("Category:", self.input_cat)
        form.addRow("Image:", img_h)

        btns = QHBoxLayout()
        btn_save = QPushButton("Save")
        btn_cancel = QPushButton("Cancel")
        btn_save.clicked.connect(self._on_save)
        btn_cancel.clicked.connect(self.reject)
        btns.addWidget(btn_save)
        btns.addWidget(btn_cancel)

        layout.addLayout(form)
        layout.addLayout(btns)
        self.setLayout(layout)

        if self.product:
            self.input_name.setText(self.product.name)
            self.input_price.setValue(float(self.product.price))
            self.input_stock.setValue(int(self.product.stock))
            idx = self.input_cat.findText(self.product.category)
            if idx >= 0:
                self.input_cat.setCurrentIndex(idx)
            if self.product.image and self.product.image != PLACEHOLDER_IMAGE:
                self.input_img.setText(self.product.image)

    def browse_image(self):
        path, _ = QFileDialog.getOpenFileName(self, "Select Image", "", "Images (*.png *.jpg *.jpeg *.bmp *.svg)")
        if path:
            self.input_img.setText(path)

    def _on_save(self):
        name = self.input_name.text().strip()
        if not name:
            QMessageBox.warning(self, "Validation", "Product name is required")
            return
        if self.input_price.value() < 1:
            QMessageBox.warning(self, "Validation", "Price must be greater than 0")
            return
        self.values = {
            'name': name,
            'price': float(self.input_price.value()),
            'stock': int(self.input_stock.value()),
            'category': self.input_cat.currentText(),
            'image': self.input_img.text().strip() or None,
        }
        self.accept()


class ProductPanel(QWidget):
    add_item = pyqtSignal(dict)
    edit_item = pyqtSignal(int, dict)
    delete_item = pyqtSignal(int)
    search_query = pyqtSignal(str)

    def __init__(self):
        super().__init__()
        self.currency = 'IDR'
        self._products = {}
        layout = QVBoxLayout()

        ctrl = QHBoxLayout()
        ctrl.addWidget(_title("Product Management"))
        ctrl.addStretch()
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search products...")
        self.search_input.returnPressed.connect(self._on_search)
        btn_search = QPushButton("Search")
        btn_search.clicked.connect(self._on_search)
        self.btn_add = QPushButton("Add")
        self.btn_edit = QPushButton("Edit Selected")
        self.btn_del = QPushButton("Delete Selected")
        for w in (self.search_input, btn_search, self.btn_add, self.btn_edit, self.btn_del):
            ctrl.addWidget(w)

        self.table = _readonly_table(["ID", "Name", "Category", "Price", "Stock"])

        layout.addLayout(ctrl)
        layout.addWidget(self.table)
        self.setLayout(layout)

        self.btn_add.clicked.connect(self._on_add)
        self.btn_edit.clicked.connect(self._on_edit)
        self.btn_del.clicked.connect(self._on_delete)

    def populate_items(self, products):
        self._products = {p.id: p for p in products}
        self.table.setRowCount(0)
        for row, p in enumerate(products):
            self.table.insertRow(row)
            self.table.setItem(row, 0, QTableWidgetItem(str(p.id)))
            self.table.setItem(row, 1, QTableWidgetItem(p.name))
            self.table.setItem(row, 2, QTableWidgetItem(p.category))
            self.table.setItem(row, 3, QTableWidgetItem(format_money(p.price, self.currency)))
            stock_item = QTableWidgetItem(str(p.stock))
            if p.stock <= 0:
                stock_item.setForeground(QBrush(QColor("red")))
            self.table.setItem(row, 4, stock_item)

    def _on_search(self):
        self.search_query.emit(self.search_input.text())

    def _on_add(self):
        dlg = ProductEditorDialog()
        if dlg.exec_() == QDialog.Accepted:
            self.add_item.emit(dlg.values)

    def _on_edit(self):
        sel_id = _selected_id(self.table)
        if sel_id is None:
            QMessageBox.warning(self, "Select", "Select a product first")
            return
        dlg = ProductEditorDialog(product=self._products.get(sel_id))
        if dlg.exec_() == QDialog.Accepted:
            self.edit_item.emit(sel_id, dlg.values)

    def _on_delete(self):
        sel_id = _selected_id(self.table)
        if sel_id is None:
            QMessageBox.warning(self, "Select", "Select a product first")
            return
        resp = QMessageBox.question(self, "Delete Product",
                                    "Delete the selected product? This cannot be undone.",
                                    QMessageBox.Yes | QMessageBox.No)
        if resp == QMessageBox.Yes:
            self.delete_item.emit(sel_id)


class TransactionDetailDialog(QDialog):
    print_requested = pyqtSignal(object) # transaction id, wider than a C int

    def __init__(self, transaction, currency='IDR'):
        super().__init__()
        self.setWindowTitle(f"Transaction #{transaction.id}")
        self.setMinimumSize(420, 480)
        layout = QVBoxLayout()

        def money(v):
            return format_money(v, currency)

        form = QFormLayout()
        form.addRow("Date:", QLabel(transaction.date.strftime("%d %B %Y, %H:%M")))
        form.addRow("Customer:", QLabel(transaction.customer_name))
        layout.addLayout(form)

        items = QTableWidget()
        items.setColumnCount(3)
        items.setHorizontalHeaderLabels(["Item", "Qty", "Subtotal"])
        items.horizontalHeader().setSectionResizeMode(0, QHeaderView.Stretch)
        items.verticalHeader().setVisible(False)
        items.setEditTriggers(QAbstractItemView.NoEditTriggers)
        items.setRowCount(len(transaction.items))
        for row, it in enumerate(transaction.items):
            items.setItem(row, 0, QTableWidgetItem(str(it.get('name'))))
            items.setItem(row, 1, QTableWidgetItem(str(it.get('quantity'))))
            items.setItem(row, 2, QTableWidgetItem(money(float(it.get('subtotal') or 0))))
        layout.addWidget(items)

        totals = QFormLayout()
        totals.addRow("Subtotal", QLabel(money(transaction.subtotal)))
        totals.addRow(TAX_LABEL, QLabel(money(transaction.tax)))
        lbl_total = QLabel(money(transaction.total))
        lbl_total.setStyleSheet("font-weight: bold;")
        totals.addRow("Total", lbl_total)
        totals.addRow("Paid", QLabel(money(transaction.cash_amount)))
        totals.addRow("Change", QLabel(money(transaction.change)))
        layout.addLayout(totals)

        btns = QHBoxLayout()
        btn_print = QPushButton("Print Receipt")
        btn_print.clicked.connect(lambda: self.print_requested.emit(transaction.id))
        btn_close = QPushButton("Close")
        btn_close.clicked.connect(self.accept)
        btns.addWidget(btn_print)
        btns.addWidget(btn_close)
        layout.addLayout(btns)
        self.setLayout(layout)


class TransactionHistoryPanel(QWidget):
    filter_requested = pyqtSignal(dict)
    page_changed = pyqtSignal(int)
    detail_requested = pyqtSignal(object) # transaction id

    def __init__(self):
        super().__init__()
        self.currency = 'IDR'
        self.page = 1
        self.total_pages = 1
        layout = QVBoxLayout()
        layout.addWidget(_title("Transaction History"))

        ctrl = QHBoxLayout()
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search transaction ID or customer name...")
        self.search_input.returnPressed.connect(self._on_filter)
        self.range_combo = QComboBox()
        for key in DATE_RANGES:
            self.range_combo.addItem(DATE_RANGE_LABELS[key], key)
        self.chk_date = QCheckBox("On date")
        self.date_edit = QDateEdit(QDate.currentDate())
        self.date_edit.setCalendarPopup(True)
        self.date_edit.setDisplayFormat("dd/MM/yyyy")
        btn_filter = QPushButton("Filter")
        btn_filter.clicked.connect(self._on_filter)
        btn_reset = QPushButton("Reset")
        btn_reset.clicked.connect(self.reset_filters)
        ctrl.addWidget(self.search_input, 1)
        ctrl.addWidget(self.range_combo)
        ctrl.addWidget(self.chk_date)
        ctrl.addWidget(self.date_edit)
        ctrl.addWidget(btn_filter)
        ctrl.addWidget(btn_reset)

        self.table = _readonly_table(["ID", "Date", "Customer", "Total"])
        self.table.doubleClicked.connect(self._on_detail)

        pager = QHBoxLayout()
        self.btn_prev = QPushButton("Previous")
        self.btn_next = QPushButton("Next")
        self.lbl_page = QLabel()
        btn_detail = QPushButton("Detail")
        btn_detail.clicked.connect(self._on_detail)
        self.btn_prev.clicked.connect(lambda: self.page_changed.emit(self.page - 1))
        self.btn_next.clicked.connect(lambda: self.page_changed.emit(self.page + 1))
        pager.addWidget(btn_detail)
        pager.addStretch()
        pager.addWidget(self.btn_prev)
        pager.addWidget(self.lbl_page)
        pager.addWidget(self.btn_next)

        layout.addLayout(ctrl)
        layout.addWidget(self.table)
        layout.addLayout(pager)
        self.setLayout(layout)

    def filters(self):
        date = None
        if self.chk_date.isChecked():
            date = self.date_edit.date().toPyDate()
        return {
            'query': self.search_input.text(),
            'date_range': self.range_combo.currentData() or "all",
            'date': date,
        }

    def reset_filters(self):
        self.search_input.clear()
        self.range_combo.setCurrentIndex(0)
        self.chk_date.setChecked(False)
        self._on_filter()

    def _on_filter(self):
        self.filter_requested.emit(self.filters())

    def _on_detail(self, *args):
        sel_id = _selected_id(self.table)
        if sel_id is None:
            QMessageBox.warning(self, "Select", "Select a transaction first")
            return
        self.detail_requested.emit(sel_id)

    def populate(self, transactions, page, total_pages):
        self.page = page
        self.total_pages = total_pages
        self.table.setRowCount(0)
        for row, t in enumerate(transactions):
            self.table.insertRow(row)
            self.table.setItem(row, 0, QTableWidgetItem(f"#{t.id}"))
            self.table.setItem(row, 1, QTableWidgetItem(t.date.strftime("%d %B %Y, %H:%M")))
            self.table.setItem(row, 2, QTableWidgetItem(t.customer_name))
            self.table.setItem(row, 3, QTableWidgetItem(format_money(t.total, self.currency)))
        self.lbl_page.setText(f"Page {page} of {total_pages}")
        self.btn_prev.setEnabled(page > 1)
        self.btn_next.setEnabled(page < total_pages)


class UserEditorDialog(QDialog):
    def __init__(self, user=None):
        super().__init__()
        self.setWindowTitle("Edit User" if user else "Add User")
        self.setMinimumSize(400, 240)
        self.user = user
        self.values = None

        layout = QVBoxLayout()
        form = QFormLayout()
        self.input_name = QLineEdit()
        self.input_username = QLineEdit()
        self.input_password = QLineEdit()
        self.input_password.setEchoMode(QLineEdit.Password)
        if user:
            self.input_password.setPlaceholderText("Leave blank to keep the current password")
        self.input_role = QComboBox()
        self.input_role.addItems(ROLES)
        form.addRow("Name:", self.input_name)
        form.addRow("Username:", self.input_username)
        form.addRow("Password:", self.input_password)
        form.addRow("Role:", self.input_role)

        btns = QHBoxLayout()
        btn_save = QPushButton("Save")
        btn_cancel = QPushButton("Cancel")
        btn_save.clicked.connect(self._on_save)
        btn_cancel.clicked.connect(self.reject)
        btns.addWidget(btn_save)
        btns.addWidget(btn_cancel)

        layout.addLayout(form)
        layout.addLayout(btns)
        self.setLayout(layout)

        if user:
            self.input_name.setText(user.name)
            self.input_username.setText(user.username)
            self.input_role.setCurrentIndex(max(0, self.input_role.findText(user.role)))

    def _on_save(self):
        if not self.input_name.text().strip():
            QMessageBox.warning(self, "Validation", "Name is required")
            return
        if len(self.input_username.text().strip()) < 3:
            QMessageBox.warning(self, "Validation", "Username must be at least 3 characters")
            return
        password = self.input_password.text()
        if (password or self.user is None) and len(password) < 6:
            QMessageBox.warning(self, "Validation", "Password must be at least 6 characters")
            return
        self.values = {
            'name': self.input_name.text().strip(),
            'username': self.input_username.text().strip(),
            'password': password,
            'role': self.input_role.currentText(),
        }
        self.accept()


class UserPanel(QWidget):
    add_user = pyqtSignal(dict)
    edit_user = pyqtSignal(int, dict)
    delete_user = pyqtSignal(int)
    search_query = pyqtSignal(str)

    def __init__(self):
        super().__init__()
        self._users = {}
        layout = QVBoxLayout()

        ctrl = QHBoxLayout()
        ctrl.addWidget(_title("User Management"))
        ctrl.addStretch()
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search users...")
        self.search_input.returnPressed.connect(lambda: self.search_query.emit(self.search_input.text()))
        btn_search = QPushButton("Search")
        btn_search.clicked.connect(lambda: self.search_query.emit(self.search_input.text()))
        btn_add = QPushButton("Add")
        btn_edit = QPushButton("Edit Selected")
        btn_del = QPushButton("Delete Selected")
        for w in (self.search_input, btn_search, btn_add, btn_edit, btn_del):
            ctrl.addWidget(w)

        self.table = _readonly_table(["ID", "Name", "Username", "Role"])

        layout.addLayout(ctrl)
        layout.addWidget(self.table)
        self.setLayout(layout)

        btn_add.clicked.connect(self._on_add)
        btn_edit.clicked.connect(self._on_edit)
        btn_del.clicked.connect(self._on_delete)

    def populate_users(self, users):
        self._users = {u.id: u for u in users}
        self.table.setRowCount(0)
        for row, u in enumerate(users):
            self.table.insertRow(row)
            self.table.setItem(row, 0, QTableWidgetItem(str(u.id)))
            self.table.setItem(row, 1, QTableWidgetItem(u.name))
            self.table.setItem(row, 2, QTableWidgetItem(u.username))
            self.table.setItem(row, 3, QTableWidgetItem(u.role.capitalize()))

    def _on_add(self):
        dlg = UserEditorDialog()
        if dlg.exec_() == QDialog.Accepted:
            self.add_user.emit(dlg.values)

    def _on_edit(self):
        sel_id = _selected_id(self.table)
        if sel_id is None:
            QMessageBox.warning(self, "Select", "Select a user first")
            return
        dlg = UserEditorDialog(user=self._users.get(sel_id))
        if dlg.exec_() == QDialog.Accepted:
            self.edit_user.emit(sel_id, dlg.values)

    def _on_delete(self):
        sel_id = _selected_id(self.table)
        if sel_id is None:
            QMessageBox.warning(self, "Select", "Select a user first")
            return
        if QMessageBox.question(self, "Delete User", "Delete the selected user?",
                                QMessageBox.Yes | QMessageBox.No) == QMessageBox.Yes:
            self.delete_user.emit(sel_id)


class SettingsPanel(QWidget):
    store_saved = pyqtSignal(dict)
    receipt_saved = pyqtSignal(dict)
    app_saved = pyqtSignal(dict)

    def __init__(self):
        super().__init__()
        layout = QVBoxLayout()
        layout.addWidget(_title("Settings"))
        tabs = QTabWidget()

        # Store
        store_w = QWidget()
        store_form = QFormLayout()
        self.store_name = QLineEdit()
        self.store_address = QLineEdit()
        self.store_phone = QLineEdit()
        self.store_email = QLineEdit()
        store_form.addRow("Store name:", self.store_name)
        store_form.addRow("Address:", self.store_address)
        store_form.addRow("Phone:", self.store_phone)
        store_form.addRow("Email (optional):", self.store_email)
        btn_store = QPushButton("Save Changes")
        btn_store.clicked.connect(lambda: self.store_saved.emit(self.store_values()))
        store_form.addRow(btn_store)
        store_w.setLayout(store_form)

        # Receipt
        receipt_w = QWidget()
        receipt_form = QFormLayout()
        self.receipt_header = QLineEdit()
        self.receipt_footer = QLineEdit()
        self.receipt_logo = QCheckBox("Show logo")
        self.receipt_tax = QCheckBox("Show tax details")
        receipt_form.addRow("Header text:", self.receipt_header)
        receipt_form.addRow("Footer text:", self.receipt_footer)
        receipt_form.addRow(self.receipt_logo)
        receipt_form.addRow(self.receipt_tax)
        btn_receipt = QPushButton("Save Changes")
        btn_receipt.clicked.connect(lambda: self.receipt_saved.emit(self.receipt_values()))
        receipt_form.addRow(btn_receipt)
        receipt_w.setLayout(receipt_form)

        # App
        app_w = QWidget()
        app_form = QFormLayout()
        self.app_tax = QDoubleSpinBox()
        self.app_tax.setRange(0, 100)
        self.app_tax.setSuffix(" %")
        self.app_currency = QComboBox()
        self.app_currency.addItems(list(CURRENCY_SYMBOLS))
        self.app_theme = QComboBox()
        self.app_theme.addItems(THEMES)
        app_form.addRow("Default tax:", self.app_tax)
        app_form.addRow("Currency:", self.app_currency)
        app_form.addRow("Theme:", self.app_theme)
        btn_app = QPushButton("Save Changes")
        btn_app.clicked.connect(lambda: self.app_saved.emit(self.app_values()))
        app_form.addRow(btn_app)
        app_w.setLayout(app_form)

        tabs.addTab(store_w, "Store")
        tabs.addTab(receipt_w, "Receipt")
        tabs.addTab(app_w, "Application")
        layout.addWidget(tabs)
        layout.addStretch()
        self.setLayout(layout)

    def load(self, settings):
        store = settings['store']
        self.store_name.setText(store.get('name', ''))
        self.store_address.setText(store.get('address', ''))
        self.store_phone.setText(store.get('phone', ''))
        self.store_email.setText(store.get('email', ''))
        receipt = settings['receipt']
        self.receipt_header.setText(receipt.get('header', ''))
        self.receipt_footer.setText(receipt.get('footer', ''))
        self.receipt_logo.setChecked(bool(receipt.get('show_logo')))
        self.receipt_tax.setChecked(bool(receipt.get('show_tax_details')))
        app = settings['app']
        self.app_tax.setValue(float(app.get('default_tax', 0)))
        self.app_currency.setCurrentText(app.get('currency', 'IDR'))
        self.app_theme.setCurrentText(app.get('theme', 'light'))

    def store_values(self):
        return {
            'name': self.store_name.text(),
            'address': self.store_address.text(),
            'phone': self.store_phone.text(),
            'email': self.store_email.text(),
        }

    def receipt_values(self):
        return {
            'header': self.receipt_header.text(),
            'footer': self.receipt_footer.text(),
            'show_logo': self.receipt_logo.isChecked(),
            'show_tax_details': self.receipt_tax.isChecked(),
        }

    def app_values(self):
        return {
            'default_tax': self.app_tax.value(),
            'currency': self.app_currency.currentText(),
            'theme': self.app_theme.currentText(),
        }
