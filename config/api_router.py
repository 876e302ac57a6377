"""
Public API router.

Every engine endpoint lives under /api/v1/. Company-scoped access checks
happen in the viewsets (see retainly.core.api.company_scoped) before a
service is called.
"""

from django.conf import settings
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from retainly.plans.api_views import SubscriptionPlanViewSet
from retainly.pricing.api_views import PricingViewSet
from retainly.retention.api_views import RetentionViewSet
from retainly.retention.api_views import WinBackCampaignViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register(
    "subscription-plans",
    SubscriptionPlanViewSet,
    basename="subscription-plan",
)
router.register(
    "subscriptions/pricing",
    PricingViewSet,
    basename="subscription-pricing",
)
router.register(
    "subscriptions/retention/winback/campaigns",
    WinBackCampaignViewSet,
    basename="winback-campaign",
)
router.register(
    "subscriptions/retention",
    RetentionViewSet,
    basename="subscription-retention",
)

app_name = "api"
urlpatterns = router.urls
