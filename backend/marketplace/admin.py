from django.contrib import admin

from .models import (
    EmergencyOrder,
    EmergencyOrderResponse,
    EmergencyOrderTarget,
    Pharmacy,
    PharmacyReview,
    Product,
    StockItem,
)


class StockItemInline(admin.TabularInline):
    model = StockItem
    extra = 0


@admin.register(Pharmacy)
class PharmacyAdmin(admin.ModelAdmin):
    list_display = ("name", "owner", "is_active", "average_rating")
    list_filter = ("is_active",)
    inlines = [StockItemInline]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sub_category", "price")
    search_fields = ("name",)


class TargetInline(admin.TabularInline):
    model = EmergencyOrderTarget
    extra = 0


class ResponseInline(admin.TabularInline):
    model = EmergencyOrderResponse
    extra = 0


@admin.register(EmergencyOrder)
class EmergencyOrderAdmin(admin.ModelAdmin):
    list_display = ("id", "requester", "requested_medicine_name", "status", "priority", "response_deadline")
    list_filter = ("status", "priority")
    inlines = [TargetInline, ResponseInline]


admin.site.register(PharmacyReview)
