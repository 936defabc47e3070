from .catalog import Company, Product
from .inventory import InventoryTransaction, StockLevel
from .parties import Customer, Supplier
from .sales import Sale, SaleItem, Payment
from .staff import Staff, Attendance, Expense

__all__ = [
    'Company', 'Product',
    'InventoryTransaction', 'StockLevel',
    'Customer', 'Supplier',
    'Sale', 'SaleItem', 'Payment',
    'Staff', 'Attendance', 'Expense',
]
