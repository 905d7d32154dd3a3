# drmp_core/iam/admin.py
from __future__ import annotations

from django.contrib import admin

from drmp_core.iam.models import Permission, Role, RolePermission, UserProfile, UserRole


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "type", "parent", "sort_order")
    list_filter = ("type",)
    search_fields = ("code", "name", "description")
    ordering = ("sort_order", "code")


class RolePermissionInline(admin.TabularInline):
    model = RolePermission
    extra = 0
    autocomplete_fields = ("permission",)


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "org_type", "is_default", "sort_order")
    list_filter = ("org_type", "is_default")
    search_fields = ("code", "name")
    inlines = [RolePermissionInline]
    ordering = ("sort_order", "code")


class UserRoleInline(admin.TabularInline):
    model = UserRole
    extra = 0
    autocomplete_fields = ("role",)


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "organization", "status", "login_count", "last_login_ip", "created_at")
    list_filter = ("status", "organization")
    search_fields = ("user__username", "user__email", "real_name", "nickname")
    autocomplete_fields = ("user", "organization")
    inlines = [UserRoleInline]
    ordering = ("-created_at",)
