import sys
import os
import argparse
from PyQt5.QtWidgets import QApplication
from PyQt5.QtGui import QIcon
from controller import MainController
# Ensure DB and seeds are prepared before launching the GUI to avoid locking conflicts
from database import DatabaseManager, DB_NAME
from storage import SQLiteStorage
import inserting


def prepare_storage(db_path=DB_NAME):
    """Open the SQLite storage and seed it on first run."""
    storage = SQLiteStorage(DatabaseManager(db_path))
    if inserting.needs_seed(storage):
        print('Storage is empty, running seed() to populate initial data...')
        inserting.seed(storage)
    return storage


def main(argv=None):
    parser = argparse.ArgumentParser(description="UMKM POS cashier")
    parser.add_argument('--db', default=DB_NAME, help='SQLite database file')
    args, qt_args = parser.parse_known_args(argv)

    app = QApplication([sys.argv[0]] + qt_args)

    # Load window/app icon if one ships with the program
    icon_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'assets', 'images', 'logo.png')
    if os.path.exists(icon_path):
        app.setWindowIcon(QIcon(icon_path))

    # Prepare storage (create schema and seed if empty) before creating the GUI
    storage = prepare_storage(args.db)

    window = MainController(storage)
    if not window.start():
        return 0
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
