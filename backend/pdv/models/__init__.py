from .auth import Operator, SessionToken
from .catalog import Category, Product, Combo, ComboItem, ModifierGroup, Modifier, ProductModifierGroup, PaymentMethod
from .tables import DiningTable, TableSession
from .registers import CashRegister, Shift, CashMovement
from .orders import Order, OrderItem, OrderItemModifier, Payment, OrderEvent
from .inventory import StockMovement

__all__ = [
    'Operator', 'SessionToken',
    'Category', 'Product', 'Combo', 'ComboItem',
    'ModifierGroup', 'Modifier', 'ProductModifierGroup', 'PaymentMethod',
    'DiningTable', 'TableSession',
    'CashRegister', 'Shift', 'CashMovement',
    'Order', 'OrderItem', 'OrderItemModifier', 'Payment', 'OrderEvent',
    'StockMovement',
]
