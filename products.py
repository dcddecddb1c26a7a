from models import Product, ProductNotFoundError, InsufficientStockError

PRODUCTS_KEY = "products"


class ProductRepository:
    """Catalog store: the authoritative product list, kept under one storage key."""

    def __init__(self, storage):
        self.storage = storage

    def _load(self):
        return [Product.from_dict(r) for r in self.storage.get_item(PRODUCTS_KEY, [])]

    def _save(self, products):
        self.storage.set_item(PRODUCTS_KEY, [p.to_dict() for p in products])

    def exists(self):
        return self.storage.get_item(PRODUCTS_KEY) is not None

    def list_products(self):
        return self._load()

    def get_product(self, id):
        for p in self._load():
            if p.id == id:
                return p
        return None

    def add_product(self, name, price, stock, category, image=None):
        products = self._load()
        new_id = max([0] + [p.id for p in products]) + 1
        product = Product(new_id, name, price, stock, category, image)
        products.append(product)
        self._save(products)
        return product

    def update_product(self, id, name, price, stock, category, image=None):
        products = self._load()
        for idx, p in enumerate(products):
            if p.id == id:
                products[idx] = Product(id, name, price, stock, category, image)
                self._save(products)
                return products[idx]
        raise ProductNotFoundError(id)

    def delete_product(self, id):
        products = self._load()
        remaining = [p for p in products if p.id != id]
        if len(remaining) == len(products):
            raise ProductNotFoundError(id)
        self._save(remaining)

    def update_stock(self, product_id, change):
        """Apply a stock delta. Refuses to take stock below zero."""
        products = self._load()
        for p in products:
            if p.id == product_id:
                new_stock = p.stock + change
                if new_stock < 0:
                    raise InsufficientStockError(p.name, p.stock)
                p.stock = new_stock
                self._save(products)
                return p
        raise ProductNotFoundError(product_id)

    def replace_all(self, products):
        self._save(products)
