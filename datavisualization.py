import csv

from PyQt5.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QTabWidget,
    QMessageBox, QComboBox, QFileDialog,
)
from matplotlib.backends.backend_qt5agg import FigureCanvasQTAgg as FigureCanvas
import matplotlib.pyplot as plt

from models import format_money
import queries

PERIOD_LABELS = [("day", "Today"), ("week", "Last 7 days"), ("month", "Last month")]

CSV_HEADER = ["id", "date", "customer", "items", "subtotal", "tax", "total", "cash", "change"]


def export_transactions_csv(transactions, path):
    """Write one row per transaction; returns the number of rows written."""
    with open(path, 'w', newline='', encoding='utf-8') as fh:
        writer = csv.writer(fh)
        writer.writerow(CSV_HEADER)
        for t in transactions:
            writer.writerow([
                t.id,
                t.date.strftime("%Y-%m-%d %H:%M:%S"),
                t.customer_name,
                t.item_count,
                f"{t.subtotal:.2f}",
                f"{t.tax:.2f}",
                f"{t.total:.2f}",
                f"{t.cash_amount:.2f}",
                f"{t.change:.2f}",
            ])
    return len(transactions)


class VizPanel(QWidget):
    """Sales report panel:
    - KPI labels (total sales, transaction count, average)
    - Daily sales (bar)
    - Top products by revenue (pie)
    - Top products by quantity (horizontal bar)

    ``load_transactions`` is a callable returning the recorded transactions;
    ``currency`` returns the currency code used for labels.
    """

    def __init__(self, load_transactions, currency=lambda: 'IDR'):
        super().__init__()
        self.load_transactions = load_transactions
        self.currency = currency
        self._current = []
        layout = QVBoxLayout()

        title = QLabel("Sales Report")
        title.setObjectName("PageTitle")
        layout.addWidget(title)

        # Controls
        controls = QHBoxLayout()
        self.period = QComboBox()
        for key, label in PERIOD_LABELS:
            self.period.addItem(label, key)
        self.period.setCurrentIndex(1)
        self.period.currentIndexChanged.connect(lambda _i: self.refresh_charts())
        btn_refresh = QPushButton("Refresh")
        btn_refresh.clicked.connect(self.refresh_charts)
        btn_export = QPushButton("Export CSV")
        btn_export.clicked.connect(self._on_export)
        controls.addWidget(QLabel("Period:"))
        controls.addWidget(self.period)
        controls.addStretch()
        controls.addWidget(btn_refresh)
        controls.addWidget(btn_export)

        kpis = QHBoxLayout()
        self.lbl_total = QLabel()
        self.lbl_count = QLabel()
        self.lbl_average = QLabel()
        for lbl in (self.lbl_total, self.lbl_count, self.lbl_average):
            lbl.setObjectName("KpiLabel")
            kpis.addWidget(lbl)

        # Tabs for charts
        tabs = QTabWidget()
        self.chart1 = FigureCanvas(plt.Figure(figsize=(5, 3)))
        self.chart2 = FigureCanvas(plt.Figure(figsize=(5, 3)))
        self.chart3 = FigureCanvas(plt.Figure(figsize=(5, 3)))
        tabs.addTab(self.chart1, "Daily Sales")
        tabs.addTab(self.chart2, "Best Sellers")
        tabs.addTab(self.chart3, "Units Sold")

        layout.addLayout(controls)
        layout.addLayout(kpis)
        layout.addWidget(tabs)
        self.setLayout(layout)

    def selected_period(self):
        return self.period.currentData() or "week"

    def refresh_charts(self):
        try:
            period = self.selected_period()
            currency = self.currency()
            self._current = queries.filter_by_period(self.load_transactions(), period)
            summary = queries.summarize(self._current)
        except Exception as e:
            QMessageBox.warning(self, 'Data Error', f'Could not load report data:\n{e}')
            return

        period_label = dict(PERIOD_LABELS).get(period, period)
        self.lbl_total.setText(f"Total sales\n{format_money(summary['total_sales'], currency)}\n{period_label}")
        self.lbl_count.setText(f"Transactions\n{summary['count']}\n{period_label}")
        self.lbl_average.setText(f"Average sale\n{format_money(summary['average'], currency)}\nper transaction")

        # Daily sales
        daily = queries.sales_by_day(self._current)
        fig1 = self.chart1.figure
        fig1.clear()
        ax1 = fig1.add_subplot(111)
        if daily:
            days = [d.strftime("%d %b") for d, _ in daily]
            totals = [v for _, v in daily]
            ax1.bar(days, totals, color='#10B981')
            ax1.set_title('Daily Sales')
            ax1.set_xlabel('Date')
            ax1.set_ylabel(f'Sales ({currency})')
            ax1.tick_params(axis='x', rotation=45)
        else:
            ax1.text(0.5, 0.5, 'No sales in range', ha='center', va='center')

        # Best sellers by revenue
        best = queries.top_products(self._current)
        fig2 = self.chart2.figure
        fig2.clear()
        ax2 = fig2.add_subplot(111)
        if best and sum(v for _, v in best) > 0:
            ax2.pie([v for _, v in best], labels=[n for n, _ in best], autopct='%1.1f%%',
                    colors=['#10B981', '#3B82F6', '#EC4899', '#8B5CF6', '#F59E0B', '#EF4444'])
            ax2.set_title('Best Sellers (revenue)')
        else:
            ax2.text(0.5, 0.5, 'No revenue data in range', ha='center', va='center')

        # Units sold
        units = queries.top_products_by_quantity(self._current)
        fig3 = self.chart3.figure
        fig3.clear()
        ax3 = fig3.add_subplot(111)
        if units:
            ax3.barh(list(reversed([n for n, _ in units])), list(reversed([q for _, q in units])), color='#3B82F6')
            ax3.set_title('Top Products (by quantity)')
            ax3.set_xlabel('Units Sold')
        else:
            ax3.text(0.5, 0.5, 'No items sold in range', ha='center', va='center')

        self.chart1.draw()
        self.chart2.draw()
        self.chart3.draw()

    def _on_export(self):
        path, _ = QFileDialog.getSaveFileName(self, "Export Report", "sales_report.csv", "CSV Files (*.csv)")
        if not path:
            return
        try:
            n = export_transactions_csv(self._current, path)
        except OSError as e:
            QMessageBox.critical(self, "Export Failed", f"Could not write {path}:\n{e}")
            return
        QMessageBox.information(self, "Export", f"Exported {n} transactions to {path}")
