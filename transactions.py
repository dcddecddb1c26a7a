from models import Transaction

TRANSACTIONS_KEY = "transactions"


class TransactionRepository:
    """Append-only list of recorded sales."""

    def __init__(self, storage):
        self.storage = storage

    def list_transactions(self):
        return [Transaction.from_dict(r) for r in self.storage.get_item(TRANSACTIONS_KEY, [])]

    def get_transaction(self, id):
        for t in self.list_transactions():
            if t.id == id:
                return t
        return None

    def next_id(self, when):
        # millisecond timestamp, bumped past the newest id so ids stay unique and increasing
        candidate = int(when.timestamp() * 1000)
        records = self.storage.get_item(TRANSACTIONS_KEY, [])
        last = max([0] + [int(r['id']) for r in records])
        return candidate if candidate > last else last + 1

    def create_transaction(self, transaction):
        records = self.storage.get_item(TRANSACTIONS_KEY, [])
        records.append(transaction.to_dict())
        self.storage.set_item(TRANSACTIONS_KEY, records)
        return transaction.id
