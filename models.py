from datetime import datetime

CATEGORIES = ["Food", "Drinks", "Snacks", "Others"]
ALL_CATEGORIES = "All"
ROLES = ["admin", "cashier"]
PLACEHOLDER_IMAGE = "placeholder.png"
DEFAULT_CUSTOMER_NAME = "Guest"

CURRENCY_SYMBOLS = {'IDR': 'Rp', 'USD': '$', 'PHP': '₱'}


def format_money(amount, currency='IDR'):
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    if currency == 'IDR':
        return f"{symbol} {amount:,.0f}"
    return f"{symbol} {amount:,.2f}"


#errors
class PosError(Exception):
    """Base class for rejected POS operations. The message is user-facing."""


class InsufficientStockError(PosError):
    def __init__(self, product_name, stock):
        super().__init__(f"Not enough stock for {product_name}: {stock} left")
        self.product_name = product_name
        self.stock = stock


class InsufficientCashError(PosError):
    def __init__(self, cash_amount, total):
        super().__init__("Cash amount does not cover the purchase total")
        self.cash_amount = cash_amount
        self.total = total


class EmptyCartError(PosError):
    def __init__(self):
        super().__init__("The cart is empty")


class ProductNotFoundError(PosError):
    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class ValidationError(PosError):
    pass


class AuthenticationError(PosError):
    pass


#product model
class Product:
    def __init__(self, id, name, price, stock, category, image=PLACEHOLDER_IMAGE):
        self.id = id
        self.name = name
        self.price = price
        self.stock = stock
        self.category = category
        self.image = image or PLACEHOLDER_IMAGE

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'stock': self.stock,
            'category': self.category,
            'image': self.image,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(int(data['id']), data['name'], float(data['price']), int(data['stock']),
                   data.get('category', ''), data.get('image'))

    def __repr__(self):
        return f"Product(id={self.id!r}, name={self.name!r}, stock={self.stock!r})"


#cart item model
class CartItem:
    def __init__(self, product, quantity):
        self.product = product
        self.quantity = quantity

    @property
    def id(self):
        return self.product.id

    @property
    def name(self):
        return self.product.name

    @property
    def price(self):
        return self.product.price

    @property
    def subtotal(self):
        return round(self.product.price * self.quantity, 2)

    def to_dict(self):
        data = self.product.to_dict()
        data.pop('stock', None)
        data['quantity'] = self.quantity
        data['subtotal'] = self.subtotal
        return data


#cart model
class Cart:
    """Line items for the sale in progress, keyed by product id.

    Quantities are checked against the stock passed in by the caller, so a line
    can never hold more units than the catalog had when it was added or
    updated.
    """

    def __init__(self):
        self.items = []

    def _find(self, product_id):
        for item in self.items:
            if item.product.id == product_id:
                return item
        return None

    def add(self, product, qty=1):
        item = self._find(product.id)
        current = item.quantity if item else 0
        if current + qty > product.stock:
            raise InsufficientStockError(product.name, product.stock)

        if item:
            item.product = product
            item.quantity += qty
        else:
            self.items.append(CartItem(product, qty))

    def update_quantity(self, product_id, new_qty, stock, product=None):
        item = self._find(product_id)
        if item is None:
            return
        if new_qty <= 0:
            self.remove(product_id)
            return
        if new_qty > stock:
            raise InsufficientStockError(item.name, stock)
        if product is not None:
            item.product = product
        item.quantity = new_qty

    def sync_product(self, product):
        """Point the line at the edited product, trimming it to the new stock.

        Returns the quantity dropped from the line (0 when nothing changed).
        """
        item = self._find(product.id)
        if item is None:
            return 0
        item.product = product
        dropped = max(0, item.quantity - max(0, product.stock))
        if dropped:
            item.quantity -= dropped
            if item.quantity <= 0:
                self.remove(product.id)
        return dropped

    def remove(self, product_id):
        self.items = [item for item in self.items if item.product.id != product_id]

    def clear(self):
        self.items = []

    def quantity_of(self, product_id):
        item = self._find(product_id)
        return item.quantity if item else 0

    def is_empty(self):
        return not self.items

    @property
    def subtotal(self):
        return round(sum(item.subtotal for item in self.items), 2)


#transaction model
class Transaction:
    """A completed sale. Instances are snapshots; nothing updates them after recording."""

    def __init__(self, id, customer_name, items, subtotal, tax, total, cash_amount, change, date):
        self.id = id
        self.customer_name = customer_name
        self.items = items
        self.subtotal = subtotal
        self.tax = tax
        self.total = total
        self.cash_amount = cash_amount
        self.change = change
        self.date = date

    def to_dict(self):
        return {
            'id': self.id,
            'customerName': self.customer_name,
            'items': [dict(i) for i in self.items],
            'subtotal': self.subtotal,
            'tax': self.tax,
            'total': self.total,
            'cashAmount': self.cash_amount,
            'change': self.change,
            'date': self.date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            int(data['id']),
            data.get('customerName') or DEFAULT_CUSTOMER_NAME,
            [dict(i) for i in data.get('items', [])],
            float(data['subtotal']),
            float(data['tax']),
            float(data['total']),
            float(data['cashAmount']),
            float(data['change']),
            datetime.fromisoformat(data['date']),
        )

    @property
    def item_count(self):
        return sum(int(i.get('quantity', 0)) for i in self.items)


#user model
class User:
    def __init__(self, id, name, username, role, password_hash=None):
        self.id = id
        self.name = name
        self.username = username
        self.role = role
        self.password_hash = password_hash

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'username': self.username,
            'role': self.role,
            'password_hash': self.password_hash,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(int(data['id']), data['name'], data['username'], data['role'], data.get('password_hash'))
