from django.contrib import admin
from django.contrib.auth import admin as auth_admin
from django.utils.translation import gettext_lazy as _

from retainly.users.models import Client
from retainly.users.models import Company
from retainly.users.models import CompanyMembership
from retainly.users.models import Organization
from retainly.users.models import User


class CompanyMembershipInline(admin.TabularInline):
    model = CompanyMembership
    extra = 0
    autocomplete_fields = ["company"]


@admin.register(User)
class UserAdmin(auth_admin.UserAdmin):
    fieldsets = (
        (None, {"fields": ("username", "password")}),
        (_("Personal info"), {"fields": ("name", "email")}),
        (
            _("Permissions"),
            {
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                ),
            },
        ),
        (_("Important dates"), {"fields": ("last_login", "date_joined")}),
    )
    list_display = ["username", "name", "is_staff", "is_superuser"]
    search_fields = ["name", "username", "email"]
    inlines = [CompanyMembershipInline]


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "created"]
    search_fields = ["name", "slug"]


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ["name", "organization", "slug", "created"]
    list_filter = ["organization"]
    search_fields = ["name", "slug"]


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ["name", "client", "slug", "created"]
    list_filter = ["client__organization"]
    search_fields = ["name", "slug"]
