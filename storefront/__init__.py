"""
Transactional order core of the storefront backend.

Orders, stock, payment gateway verification and GST invoicing live here.
Everything outside the order/payment/stock boundary (catalog CRUD, carts,
authentication) is reached through the protocols in
``storefront.repositories``.
"""

__version__ = "0.1.0"
