from django.contrib import admin

from modules.orders.models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ("product", "quantity", "unit_price", "line_total")
    readonly_fields = fields
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "customer",
        "status",
        "payment_status",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "payment_status")
    search_fields = ("order_number", "customer__email")
    readonly_fields = (
        "order_number",
        "subtotal",
        "tax_amount",
        "shipping_amount",
        "total_amount",
    )
    inlines = [OrderItemInline]
