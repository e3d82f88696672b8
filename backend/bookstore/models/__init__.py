from .reference import Branch, Warehouse, Currency, PaymentType, Category, Author, Supplier
from .auth import User, SessionToken
from .catalog import Product, ProductPrice
from .inventory import ProductStock, ProductMovement, AppendOnlyViolation
from .registers import CashRegister, FinancialMovement, CirculatingFund, MoneyTransfer
from .sales import Sale, SaleItem
from .purchases import Purchase, PurchaseItem

__all__ = [
    'Branch', 'Warehouse', 'Currency', 'PaymentType', 'Category', 'Author', 'Supplier',
    'User', 'SessionToken',
    'Product', 'ProductPrice',
    'ProductStock', 'ProductMovement', 'AppendOnlyViolation',
    'CashRegister', 'FinancialMovement', 'CirculatingFund', 'MoneyTransfer',
    'Sale', 'SaleItem',
    'Purchase', 'PurchaseItem',
]
