# storefront/api/__init__.py
from storefront.api.routers import admin_orders, carts, guest_cart, health, orders

ROUTERS = (
    health.router,
    carts.router,
    guest_cart.router,
    orders.router,
    admin_orders.router,
)
