from handrest.extensions import db
from handrest.models import Notification


class NotificationService:
    @staticmethod
    def push(user_id, title, message, booking_id=None):
        if user_id is None:
            return None
        notification = Notification(user_id=user_id, title=title, message=message, booking_id=booking_id)
        db.session.add(notification)
        db.session.flush()
        return notification

    @staticmethod
    def push_many(user_ids, title, message, booking_id=None):
        return [NotificationService.push(uid, title, message, booking_id) for uid in set(user_ids)]

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    @staticmethod
    def latest_for_user(user_id, limit=10):
        return (
            Notification.query.filter_by(user_id=user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def mark_all_read(user_id):
        Notification.query.filter_by(user_id=user_id, is_read=False).update({"is_read": True})
        db.session.commit()
