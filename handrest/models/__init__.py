from handrest.models.addon_service import AddonService
from handrest.models.admin_permission import AdminPermission
from handrest.models.assignment import StaffAssignment
from handrest.models.audit import BookingAuditLog
from handrest.models.booking import Booking, BookingLineItem
from handrest.models.custom_feature import CategoryFeatureMapping, CustomFeature
from handrest.models.earning import StaffEarning
from handrest.models.notification import Notification
from handrest.models.package import Package
from handrest.models.panchayath import Panchayath, StaffCoverage
from handrest.models.payment import Payment
from handrest.models.platform_setting import PlatformSetting
from handrest.models.rating import Rating
from handrest.models.service_category import ServiceCategory
from handrest.models.user import StaffDetails, User

__all__ = [
    "User",
    "StaffDetails",
    "Panchayath",
    "StaffCoverage",
    "ServiceCategory",
    "Package",
    "CustomFeature",
    "CategoryFeatureMapping",
    "AddonService",
    "Booking",
    "BookingLineItem",
    "StaffAssignment",
    "Payment",
    "StaffEarning",
    "Rating",
    "AdminPermission",
    "BookingAuditLog",
    "Notification",
    "PlatformSetting",
]
