import re
from datetime import datetime

from models import (
    Cart, Transaction, ROLES, DEFAULT_CUSTOMER_NAME, CURRENCY_SYMBOLS,
    EmptyCartError, InsufficientCashError, InsufficientStockError,
    ProductNotFoundError, ValidationError, AuthenticationError,
)

TAX_RATE = 0.10

SESSION_KEY = "user"
SETTINGS_KEY = "settings"

DEFAULT_SETTINGS = {
    'store': {
        'name': "UMKM POS Cafe",
        'address': "Jl. Contoh No. 123, Jakarta",
        'phone': "0812-3456-7890",
        'email': "info@umkmpos.com",
    },
    'receipt': {
        'header': "Thank you for shopping with us",
        'footer': "Goods sold cannot be returned",
        'show_logo': True,
        'show_tax_details': True,
    },
    'app': {
        'default_tax': 10,
        'currency': "IDR",
        'theme': "light",
    },
}

THEMES = ["light", "dark"]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


#Checkout calculator
class CheckoutTotals:
    def __init__(self, subtotal, tax, total, change):
        self.subtotal = subtotal
        self.tax = tax
        self.total = total
        self.change = change

    def as_dict(self):
        return {'subtotal': self.subtotal, 'tax': self.tax, 'total': self.total, 'change': self.change}


def calculate_change(cash_amount, total):
    return round(cash_amount - total, 2) if cash_amount > total else 0.0


def calculate_totals(items, cash_amount=0.0, rate=TAX_RATE):
    """Subtotal, tax, total and change for a list of cart lines."""
    subtotal = round(sum(item.subtotal for item in items), 2)
    # rounded to cents, so tax is subtotal * rate only to the nearest 0.01
    tax = round(subtotal * rate, 2)
    total = round(subtotal + tax, 2)
    return CheckoutTotals(subtotal, tax, total, calculate_change(cash_amount, total))


#Product Service
class ProductService:

    def __init__(self, products, audit=None):
        self.products = products
        self.audit = audit

    def list_products(self):
        return self.products.list_products()

    def get_product(self, id):
        return self.products.get_product(id)

    def _clean(self, values):
        name = str(values.get('name') or '').strip()
        if not name:
            raise ValidationError("Product name is required")
        try:
            price = round(float(values.get('price')), 2)
        except (TypeError, ValueError):
            raise ValidationError("Price must be a number")
        if price < 1:
            raise ValidationError("Price must be greater than 0")
        try:
            stock = int(values.get('stock'))
        except (TypeError, ValueError):
            raise ValidationError("Stock must be a whole number")
        if stock < 0:
            raise ValidationError("Stock cannot be negative")
        category = str(values.get('category') or '').strip()
        if not category:
            raise ValidationError("Category is required")
        image = (values.get('image') or '').strip() or None
        return name, price, stock, category, image

    def create_product(self, values, actor=None):
        product = self.products.add_product(*self._clean(values))
        self._log('product_create', f"Created product: {product.name}", actor)
        return product

    def update_product(self, id, values, actor=None):
        product = self.products.update_product(id, *self._clean(values))
        self._log('product_update', f"Updated product {id}: {product.name}", actor)
        return product

    def delete_product(self, id, actor=None):
        self.products.delete_product(id)
        self._log('product_delete', f"Deleted product {id}", actor)

    def _log(self, event_type, detail, actor):
        if self.audit is None:
            return
        actor = actor or {}
        self.audit.write_audit(event_type, detail, username=actor.get('username'), role=actor.get('role'))


#Cart service
class CartService:
    def __init__(self, products):
        self.products = products
        self.cart = Cart()

    def _product(self, product_id):
        product = self.products.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def add_to_cart(self, product_id, qty=1):
        self.cart.add(self._product(product_id), qty)

    def update_quantity(self, product_id, new_qty):
        if new_qty <= 0:
            self.cart.remove(product_id)
            return
        product = self._product(product_id)
        self.cart.update_quantity(product_id, new_qty, product.stock, product)

    def sync_product(self, product):
        return self.cart.sync_product(product)

    def remove_from_cart(self, product_id):
        self.cart.remove(product_id)

    def clear_cart(self):
        self.cart.clear()

    def get_items(self):
        return self.cart.items

    def get_totals(self, cash_amount=0.0):
        return calculate_totals(self.cart.items, cash_amount)


#Check-out service
class CheckoutService:
    """Turns a cart into a recorded transaction.

    Appending the transaction and decrementing stock happen inside one storage
    transaction: if any line fails the stock check nothing is written.
    """

    def __init__(self, storage, products, transactions, clock=datetime.now):
        self.storage = storage
        self.products = products
        self.transactions = transactions
        self.clock = clock

    def checkout(self, cart, cash_amount, customer_name=None, actor=None):
        if cart.is_empty():
            raise EmptyCartError()

        totals = calculate_totals(cart.items, cash_amount)
        if cash_amount < totals.total:
            raise InsufficientCashError(cash_amount, totals.total)

        with self.storage.transaction():
            # Validate stock against the catalog, not the cart snapshot
            for item in cart.items:
                product = self.products.get_product(item.id)
                if product is None:
                    raise ProductNotFoundError(item.id)
                if product.stock < item.quantity:
                    raise InsufficientStockError(product.name, product.stock)

            when = self.clock()
            transaction = Transaction(
                self.transactions.next_id(when),
                (customer_name or '').strip() or DEFAULT_CUSTOMER_NAME,
                [item.to_dict() for item in cart.items],
                totals.subtotal,
                totals.tax,
                totals.total,
                round(float(cash_amount), 2),
                totals.change,
                when,
            )
            self.transactions.create_transaction(transaction)

            for item in cart.items:
                self.products.update_stock(item.id, -item.quantity)

        actor = actor or {}
        self.storage.write_audit('checkout', f"Transaction {transaction.id} total {transaction.total:.2f}",
                                 username=actor.get('username'), role=actor.get('role'))
        cart.clear()
        return transaction


#User service
class UserService:
    def __init__(self, users, audit=None):
        self.users = users
        self.audit = audit

    def list_users(self):
        return self.users.list_users()

    def _clean(self, values, user_id=None, password_required=True):
        name = str(values.get('name') or '').strip()
        username = str(values.get('username') or '').strip()
        password = values.get('password') or ''
        role = values.get('role') or 'cashier'
        if not name:
            raise ValidationError("Name is required")
        if len(username) < 3:
            raise ValidationError("Username must be at least 3 characters")
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}")
        if password or password_required:
            if len(password) < 6:
                raise ValidationError("Password must be at least 6 characters")
        existing = self.users.get_by_username(username)
        if existing is not None and existing.id != user_id:
            raise ValidationError(f"Username {username} is already taken")
        return name, username, role, password

    def create_user(self, values, actor=None):
        user = self.users.add_user(*self._clean(values))
        self._log('user_create', f"Created user: {user.username}", actor)
        return user

    def update_user(self, id, values, actor=None):
        name, username, role, password = self._clean(values, user_id=id, password_required=False)
        user = self.users.update_user(id, name, username, role, password or None)
        self._log('user_update', f"Updated user {id}: {user.username}", actor)
        return user

    def delete_user(self, id, actor=None):
        self.users.delete_user(id)
        self._log('user_delete', f"Deleted user {id}", actor)

    def _log(self, event_type, detail, actor):
        if self.audit is None:
            return
        actor = actor or {}
        self.audit.write_audit(event_type, detail, username=actor.get('username'), role=actor.get('role'))


#Auth service
class AuthService:
    def __init__(self, storage, users):
        self.storage = storage
        self.users = users

    def login(self, username, password):
        username = (username or '').strip()
        password = password or ''
        if not username:
            raise AuthenticationError("Username is required")
        if len(password) < 6:
            raise AuthenticationError("Password must be at least 6 characters")

        user = self.users.get_by_username(username)
        if user is None or not self.users.verify_password(user, password):
            self.storage.write_audit('login_failed', f"Failed login for {username}", username=username)
            raise AuthenticationError("Invalid username or password")

        session = {'username': user.username, 'role': user.role}
        self.storage.set_item(SESSION_KEY, session)
        self.storage.write_audit('login_success', "Login successful", username=user.username, role=user.role)
        return session

    def current_user(self):
        return self.storage.get_item(SESSION_KEY)

    def is_authenticated(self):
        return self.current_user() is not None

    def logout(self):
        session = self.current_user()
        self.storage.remove_item(SESSION_KEY)
        if session:
            self.storage.write_audit('logout', "Logout", username=session.get('username'), role=session.get('role'))


#Settings service
class SettingsService:
    def __init__(self, storage):
        self.storage = storage

    def get_settings(self):
        stored = self.storage.get_item(SETTINGS_KEY, {})
        merged = {}
        for section, defaults in DEFAULT_SETTINGS.items():
            merged[section] = dict(defaults)
            merged[section].update(stored.get(section) or {})
        return merged

    def _save_section(self, section, values, actor=None):
        current = self.get_settings()
        current[section] = values
        self.storage.set_item(SETTINGS_KEY, current)
        actor = actor or {}
        self.storage.write_audit('settings_update', f"Updated {section} settings",
                                 username=actor.get('username'), role=actor.get('role'))
        return values

    def save_store(self, values, actor=None):
        cleaned = {k: str(values.get(k) or '').strip() for k in ('name', 'address', 'phone', 'email')}
        if not cleaned['name']:
            raise ValidationError("Store name is required")
        if not cleaned['address']:
            raise ValidationError("Address is required")
        if not cleaned['phone']:
            raise ValidationError("Phone number is required")
        if cleaned['email'] and not _EMAIL_RE.match(cleaned['email']):
            raise ValidationError("Invalid email format")
        return self._save_section('store', cleaned, actor)

    def save_receipt(self, values, actor=None):
        cleaned = {
            'header': str(values.get('header') or '').strip(),
            'footer': str(values.get('footer') or '').strip(),
            'show_logo': bool(values.get('show_logo', True)),
            'show_tax_details': bool(values.get('show_tax_details', True)),
        }
        return self._save_section('receipt', cleaned, actor)

    def save_app(self, values, actor=None):
        try:
            default_tax = float(values.get('default_tax'))
        except (TypeError, ValueError):
            raise ValidationError("Default tax must be a number")
        if not 0 <= default_tax <= 100:
            raise ValidationError("Default tax must be between 0 and 100")
        currency = values.get('currency') or 'IDR'
        if currency not in CURRENCY_SYMBOLS:
            raise ValidationError(f"Unsupported currency: {currency}")
        theme = values.get('theme') or 'light'
        if theme not in THEMES:
            raise ValidationError(f"Unknown theme: {theme}")
        cleaned = {'default_tax': default_tax, 'currency': currency, 'theme': theme}
        return self._save_section('app', cleaned, actor)
