from .stores import Store, UserStore
from .auth import User, SessionToken
from .catalog import Category, Product
from .customers import Customer
from .sales import Sale, SaleItem, Payment
from .cash import CashTransaction
from .shifts import Shift
from .online import ShoppingCart, CartItem, OnlineOrder, OnlineOrderItem

__all__ = [
    'Store', 'UserStore',
    'User', 'SessionToken',
    'Category', 'Product',
    'Customer',
    'Sale', 'SaleItem', 'Payment',
    'CashTransaction',
    'Shift',
    'ShoppingCart', 'CartItem', 'OnlineOrder', 'OnlineOrderItem',
]
