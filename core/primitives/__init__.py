"""
Tally Core Primitives — Entity & Order Value Objects
======================================================
Pure Python (no Django dependency), immutable, deterministic.

Primitives:
    entities: Account, InventoryItem, entity keys and codecs
    order:    LineItem, Order, OrderStatus lifecycle
"""
