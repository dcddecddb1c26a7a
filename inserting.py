import argparse
import os
from datetime import datetime, timedelta

from database import DatabaseManager, DB_NAME
from storage import SQLiteStorage
from models import Product, Transaction, PLACEHOLDER_IMAGE
from products import ProductRepository, PRODUCTS_KEY
from transactions import TransactionRepository
from users import UserRepository, USERS_KEY
from services import SETTINGS_KEY, DEFAULT_SETTINGS, calculate_change, TAX_RATE

# Products (name, price, stock, category)
PRODUCTS = [
    ("Kopi Hitam", 15000, 20, "Drinks"),
    ("Kopi Latte", 20000, 15, "Drinks"),
    ("Teh Tarik", 15000, 25, "Drinks"),
    ("Roti Bakar", 12000, 18, "Food"),
    ("Nasi Goreng", 25000, 10, "Food"),
    ("Mie Goreng", 20000, 12, "Food"),
]

# Users (name, username, role, password)
USERS = [
    ("Admin", "admin", "admin", "password"),
    ("Budi Santoso", "budi", "cashier", "kasir123"),
    ("Siti Nurhaliza", "siti", "cashier", "kasir123"),
]

# Sample sales: (id, customer, days ago, [(product name, qty)], cash)
DEMO_TRANSACTIONS = [
    (1001, "Budi", 0, [("Kopi Hitam", 2), ("Roti Bakar", 1)], 50000),
    (1002, "Ani", 1, [("Kopi Latte", 1), ("Nasi Goreng", 1)], 50000),
    (1003, "Citra", 2, [("Teh Tarik", 2), ("Mie Goreng", 1)], 100000),
]


def needs_seed(storage):
    return storage.get_item(PRODUCTS_KEY) is None or storage.get_item(USERS_KEY) is None


def seed(storage, demo_transactions=False):
    """Populate products, users and settings that are not stored yet.

    Existing keys are left alone so re-running never clobbers live data.
    """
    products = ProductRepository(storage)
    users = UserRepository(storage)

    with storage.transaction():
        if not products.exists():
            products.replace_all([
                Product(i, name, float(price), stock, category, PLACEHOLDER_IMAGE)
                for i, (name, price, stock, category) in enumerate(PRODUCTS, start=1)
            ])
            print(f"Seeded {len(PRODUCTS)} products.")

        if not users.exists():
            for name, username, role, password in USERS:
                users.add_user(name, username, role, password)
            print(f"Seeded {len(USERS)} users.")

        if storage.get_item(SETTINGS_KEY) is None:
            storage.set_item(SETTINGS_KEY, DEFAULT_SETTINGS)
            print("Seeded default settings.")

        if demo_transactions:
            added = seed_demo_transactions(storage)
            print(f"Recorded {added} demo transactions.")

    print("Storage Seeded.")


def seed_demo_transactions(storage, now=None):
    """Record the sample sales unless a transaction with the same id already exists.

    Stock is not touched: these stand for sales made before the seeded counts.
    """
    now = now or datetime.now()
    repo = TransactionRepository(storage)
    catalog = {p.name: p for p in ProductRepository(storage).list_products()}
    known = {t.id for t in repo.list_transactions()}
    added = 0
    for tx_id, customer, days_ago, lines, cash in DEMO_TRANSACTIONS:
        if tx_id in known:
            continue
        items = []
        for name, qty in lines:
            product = catalog.get(name)
            price = product.price if product else 0.0
            items.append({
                'id': product.id if product else None,
                'name': name,
                'price': price,
                'category': product.category if product else '',
                'image': product.image if product else PLACEHOLDER_IMAGE,
                'quantity': qty,
                'subtotal': round(price * qty, 2),
            })
        subtotal = round(sum(i['subtotal'] for i in items), 2)
        tax = round(subtotal * TAX_RATE, 2)
        total = round(subtotal + tax, 2)
        repo.create_transaction(Transaction(
            tx_id, customer, items, subtotal, tax, total, float(cash),
            calculate_change(cash, total),
            now - timedelta(days=days_ago),
        ))
        added += 1
    return added


def verify_images(storage):
    """List products and whether their image path exists on disk.

    Prints lines: id, name, image path, status. Returns the ids with a missing image.
    """
    missing = []
    print(f"{'ID':<4} {'Name':<30} {'Image Path':<60} {'Status'}")
    print('-' * 110)
    for p in ProductRepository(storage).list_products():
        ip = p.image or ''
        if ip == PLACEHOLDER_IMAGE:
            status = 'PLACEHOLDER'
        elif os.path.exists(ip) or os.path.exists(os.path.join('assets', 'images', os.path.basename(ip))):
            status = 'OK'
        else:
            status = 'MISSING'
            missing.append(p.id)
        print(f"{p.id:<4} {p.name:<30} {ip:<60} {status}")
    return missing


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument('--verify', action='store_true', help='Verify product image paths')
    parser.add_argument('--seed', action='store_true', help='Run storage seed')
    parser.add_argument('--demo-transactions', action='store_true', help='Also record three sample transactions')
    parser.add_argument('--db', default=DB_NAME, help='SQLite database file')
    args = parser.parse_args(argv)

    storage = SQLiteStorage(DatabaseManager(args.db))
    if args.verify:
        verify_images(storage)
    else:
        # Default to seeding when no flags provided
        seed(storage, demo_transactions=args.demo_transactions)


if __name__ == "__main__":
    main()
