from django.contrib import admin

from retainly.catalog.models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["name", "company", "sku", "price", "is_active"]
    list_filter = ["is_active", "company"]
    search_fields = ["name", "sku"]
