def money(value):
    return str(value) if value is not None else None


def line_item_to_dict(item):
    return {
        "item_id": item.item_id,
        "kind": item.kind,
        "name": item.name,
        "unit_price": money(item.unit_price if hasattr(item, "unit_price") else item.price),
        "quantity": item.quantity,
    }


def order_total_to_dict(total):
    return {
        "features": [line_item_to_dict(item) for item in total.features],
        "addons": [line_item_to_dict(item) for item in total.addons],
        "feature_total": money(total.feature_total),
        "addon_total": money(total.addon_total),
        "grand_total": money(total.grand_total),
        "meets_minimum": total.meets_minimum,
    }


def booking_to_dict(booking, detail=False):
    data = {
        "id": booking.id,
        "booking_number": booking.booking_number,
        "status": booking.status,
        "customer_name": booking.customer_name,
        "scheduled_date": booking.scheduled_date.isoformat(),
        "scheduled_time": booking.scheduled_time.strftime("%H:%M"),
        "panchayath_id": booking.panchayath_id,
        "ward_number": booking.ward_number,
        "base_price": money(booking.base_price),
        "addon_price": money(booking.addon_price),
        "total_price": money(booking.total_price),
        "required_staff_count": booking.required_staff_count,
        "accepted_count": booking.accepted_count,
        "created_at": booking.created_at.isoformat() if booking.created_at else None,
    }
    if detail:
        data.update(
            {
                "customer_phone": booking.customer_phone,
                "customer_email": booking.customer_email,
                "address_line1": booking.address_line1,
                "address_line2": booking.address_line2,
                "city": booking.city,
                "pincode": booking.pincode,
                "landmark": booking.landmark,
                "special_instructions": booking.special_instructions,
                "completed_at": booking.completed_at.isoformat() if booking.completed_at else None,
                "line_items": [line_item_to_dict(item) for item in booking.line_items],
            }
        )
    return data


def assignment_to_dict(assignment):
    return {
        "id": assignment.id,
        "booking_id": assignment.booking_id,
        "staff_user_id": assignment.staff_user_id,
        "status": assignment.status,
        "assigned_at": assignment.assigned_at.isoformat(),
    }


def user_to_dict(user):
    return {"id": user.id, "full_name": user.full_name, "email": user.email, "phone": user.phone, "role": user.role}


def catalog_item_to_dict(row):
    data = {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "icon": getattr(row, "icon", None),
        "display_order": row.display_order,
        "is_active": row.is_active,
    }
    if hasattr(row, "price"):
        data["price"] = money(row.price)
    if hasattr(row, "effective_price"):
        data.update(
            {
                "category_id": row.category_id,
                "effective_price": money(row.effective_price),
                "discount_amount": money(row.discount_amount),
                "duration_hours": row.duration_hours,
                "min_staff": row.min_staff,
                "max_sqft": row.max_sqft,
                "is_featured": row.is_featured,
            }
        )
    return data


def panchayath_to_dict(panchayath):
    return {
        "id": panchayath.id,
        "name": panchayath.name,
        "ward_count": panchayath.ward_count,
        "is_active": panchayath.is_active,
    }
