from blinker import Namespace

booking_signals = Namespace()

# sender: the Booking; kwargs: from_status, to_status, actor
booking_status_changed = booking_signals.signal("booking-status-changed")

# sender: the Booking; kwargs: from_status, to_status, actor, reason
booking_status_overridden = booking_signals.signal("booking-status-overridden")

# sender: the Booking; kwargs: assignment, staff_id
job_accepted = booking_signals.signal("job-accepted")
