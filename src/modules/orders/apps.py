from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import InventoryAdjustmentFailed, OrderPlaced
        from modules.orders.handlers import (
            inventory_adjustment_failed_handler,
            order_placed_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderPlaced, order_placed_handler)
        event_bus.subscribe(
            InventoryAdjustmentFailed, inventory_adjustment_failed_handler
        )
