from decimal import Decimal, InvalidOperation

from flask import current_app

from handrest.errors import ValidationError
from handrest.extensions import db
from handrest.models import PlatformSetting


class PlatformService:
    @staticmethod
    def get_setting(key, default=None):
        setting = db.session.get(PlatformSetting, key)
        if not setting:
            return default
        return setting.value

    @staticmethod
    def get_decimal(key, default):
        raw = PlatformService.get_setting(key, str(default))
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            return Decimal(str(default))

    @staticmethod
    def commission_pct():
        return PlatformService.get_decimal("commission_pct", current_app.config["DEFAULT_COMMISSION_PCT"])

    @staticmethod
    def set_setting(key, value, description=None):
        setting = db.session.get(PlatformSetting, key)
        if setting:
            setting.value = str(value)
        else:
            setting = PlatformSetting(key=key, value=str(value), description=description)
            db.session.add(setting)
        db.session.commit()
        return setting

    @staticmethod
    def set_commission_pct(value):
        try:
            pct = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValidationError("Commission must be a number.") from exc
        if pct < 0 or pct > 100:
            raise ValidationError("Commission must be between 0 and 100.")
        return PlatformService.set_setting("commission_pct", pct, "Platform fee withheld from staff earnings")
