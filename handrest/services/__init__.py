from handrest.services.assignment_service import AssignmentService
from handrest.services.auth_service import AuthService
from handrest.services.booking_service import BookingService
from handrest.services.catalog_service import CatalogService
from handrest.services.notification_service import NotificationService
from handrest.services.permission_service import PermissionService
from handrest.services.platform_service import PlatformService
from handrest.services.pricing_service import PricingService

__all__ = [
    "AssignmentService",
    "AuthService",
    "BookingService",
    "CatalogService",
    "NotificationService",
    "PermissionService",
    "PlatformService",
    "PricingService",
]
