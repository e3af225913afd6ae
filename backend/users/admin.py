from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User


@admin.register(User)
class PharmaLinkUserAdmin(UserAdmin):
    list_display = ("username", "role", "phone_number", "is_active")
    list_filter = ("role", "is_active")
    fieldsets = UserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("role", "phone_number", "address", "lng", "lat")}),
    )
