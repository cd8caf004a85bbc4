from flask import current_app

from handrest.errors import Forbidden, NotFound, ValidationError
from handrest.extensions import db
from handrest.models import AdminPermission, User
from handrest.policy import AdminTab, Role, can_view_tab, parse_role


class PermissionService:
    @staticmethod
    def resolve(user_id):
        """Build the ``{AdminTab: bool}`` lookup for an admin from stored grants."""
        rows = AdminPermission.query.filter_by(user_id=user_id).all()
        granted = {}
        for row in rows:
            try:
                granted[AdminTab(row.tab)] = bool(row.allowed)
            except ValueError:
                continue
        return granted

    @staticmethod
    def visible_tabs(actor):
        permissions = PermissionService.resolve(actor.id) if parse_role(actor.role) == Role.ADMIN else {}
        return [tab for tab in AdminTab if can_view_tab(actor.role, permissions, tab)]

    @staticmethod
    def ensure_tab(actor, tab):
        permissions = PermissionService.resolve(actor.id) if parse_role(actor.role) == Role.ADMIN else {}
        if not can_view_tab(actor.role, permissions, tab):
            raise Forbidden(f"No access to the {AdminTab(tab).value} tab.")

    @staticmethod
    def set_permissions(actor, user_id, tabs):
        """Replace an admin's granted tabs. Only a super admin may do this."""
        if parse_role(actor.role) != Role.SUPER_ADMIN:
            raise Forbidden("Only a super admin can change admin permissions.")
        target = db.session.get(User, user_id)
        if not target:
            raise NotFound("User not found.")
        if parse_role(target.role) != Role.ADMIN:
            raise ValidationError("Permissions can only be granted to admins.")

        try:
            wanted = {AdminTab(tab) for tab in (tabs or [])}
        except ValueError as exc:
            raise ValidationError("Unknown admin tab.") from exc

        AdminPermission.query.filter_by(user_id=target.id).delete()
        for tab in sorted(wanted, key=lambda t: t.value):
            db.session.add(AdminPermission(user_id=target.id, tab=tab.value, allowed=True))
        db.session.commit()
        current_app.logger.info(
            "Admin %s permissions set by %s: %s", target.id, actor.id, ", ".join(t.value for t in wanted) or "none"
        )
        return PermissionService.resolve(target.id)
