"""Message content for appointment notifications."""

from datetime import datetime, tzinfo
from html import escape
from zoneinfo import ZoneInfo

from app.schemas.appointments import AppointmentDetails
from app.schemas.notifications import NotificationRequest, NotificationType

SUBJECTS: dict[NotificationType, str] = {
    NotificationType.APPOINTMENT_REMINDER: "Appointment Reminder - Tomorrow",
    NotificationType.APPOINTMENT_CONFIRMATION: "Appointment Confirmed",
    NotificationType.APPOINTMENT_CANCELLATION: "Appointment Cancelled",
    NotificationType.APPOINTMENT_RESCHEDULED: "Appointment Rescheduled",
}

DEFAULT_SUBJECT = "Clinic Notification"

INTRODUCTIONS: dict[NotificationType, str] = {
    NotificationType.APPOINTMENT_CONFIRMATION: "Your appointment has been confirmed.",
    NotificationType.APPOINTMENT_CANCELLATION: "Your appointment has been cancelled.",
    NotificationType.APPOINTMENT_RESCHEDULED: "Your appointment has been rescheduled.",
}

DEFAULT_INTRODUCTION = "This is a notification regarding your appointment."
CONTACT_NOTE = "If you have any questions, please contact our clinic."

DATE_FORMAT = "%A, %B %d, %Y"
TIME_FORMAT = "%I:%M %p"

FOOTER = "This is an automated message. Please do not reply to this email."
ARRIVAL_NOTE = (
    "Please arrive 15 minutes early for check-in. If you need to reschedule or cancel, "
    "please contact us as soon as possible."
)

_HTML_STYLE = """
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background-color: #4CAF50; color: white; padding: 20px; text-align: center; }
        .content { padding: 20px; background-color: #f9f9f9; }
        .appointment-details { background-color: white; padding: 15px; border-left: 4px solid #4CAF50; margin: 15px 0; }
        .footer { text-align: center; padding: 20px; font-size: 12px; color: #666; }
"""


def subject_for(notification_type: NotificationType) -> str:
    """Subject line for a notification type."""
    return SUBJECTS.get(notification_type, DEFAULT_SUBJECT)


def _display_date_time(value: datetime, timezone: tzinfo | None) -> tuple[str, str]:
    local_time = value.astimezone(timezone or ZoneInfo("UTC"))
    return local_time.strftime(DATE_FORMAT), local_time.strftime(TIME_FORMAT)


def _reminder_text(name: str, date: str, time: str, doctor: str, notes: str | None) -> str:
    lines = [
        "APPOINTMENT REMINDER",
        "",
        f"Dear {name},",
        "",
        "This is a friendly reminder about your upcoming appointment.",
        "",
        "Appointment Details:",
        f"- Date: {date}",
        f"- Time: {time}",
        f"- Doctor: {doctor}",
    ]
    if notes:
        lines.append(f"- Notes: {notes}")
    lines += ["", ARRIVAL_NOTE, "", "Thank you for choosing our clinic!", "", "---", FOOTER]
    return "\n".join(lines)


def _reminder_html(name: str, date: str, time: str, doctor: str, notes: str | None) -> str:
    notes_row = f"<p><strong>Notes:</strong> {escape(notes)}</p>" if notes else ""
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Appointment Reminder</title>
    <style>{_HTML_STYLE}    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>Appointment Reminder</h1>
        </div>
        <div class="content">
            <p>Dear {escape(name)},</p>
            <p>This is a friendly reminder about your upcoming appointment.</p>
            <div class="appointment-details">
                <h3>Appointment Details:</h3>
                <p><strong>Date:</strong> {date}</p>
                <p><strong>Time:</strong> {time}</p>
                <p><strong>Doctor:</strong> {escape(doctor)}</p>
                {notes_row}
            </div>
            <p>{ARRIVAL_NOTE}</p>
            <p>Thank you for choosing our clinic!</p>
        </div>
        <div class="footer">
            <p>{FOOTER}</p>
        </div>
    </div>
</body>
</html>"""


def build_reminder_request(
    details: AppointmentDetails, timezone: tzinfo | None = None
) -> NotificationRequest:
    """
    Render the reminder for an appointment.

    Args:
        details: Appointment with patient contact and doctor name
        timezone: Zone used to display the appointment time (UTC by default)

    Returns:
        Channel-independent notification request
    """
    appointment = details.appointment
    patient = details.patient
    date, time = _display_date_time(appointment.scheduled_at, timezone)
    doctor = details.doctor_name or "TBD"

    return NotificationRequest(
        recipient_name=patient.name,
        recipient_email=patient.email,
        recipient_phone=patient.phone,
        push_tokens=patient.push_tokens,
        notification_type=NotificationType.APPOINTMENT_REMINDER,
        subject=subject_for(NotificationType.APPOINTMENT_REMINDER),
        body=_reminder_text(patient.name, date, time, doctor, appointment.notes),
        html_body=_reminder_html(patient.name, date, time, doctor, appointment.notes),
        data={
            "type": NotificationType.APPOINTMENT_REMINDER.value,
            "appointment_id": str(appointment.id),
            "scheduled_at": appointment.scheduled_at.isoformat(),
        },
    )


def _notification_text(
    notification_type: NotificationType, name: str, date: str, time: str, doctor: str
) -> str:
    introduction = INTRODUCTIONS.get(notification_type, DEFAULT_INTRODUCTION)
    return "\n".join(
        [
            subject_for(notification_type).upper(),
            "",
            f"Dear {name},",
            "",
            introduction,
            "",
            "Appointment Details:",
            f"- Date: {date}",
            f"- Time: {time}",
            f"- Doctor: {doctor}",
            "",
            CONTACT_NOTE,
            "",
            "Thank you for choosing our clinic!",
            "",
            "---",
            FOOTER,
        ]
    )


def _notification_html(
    notification_type: NotificationType, name: str, date: str, time: str, doctor: str
) -> str:
    subject = subject_for(notification_type)
    introduction = INTRODUCTIONS.get(notification_type, DEFAULT_INTRODUCTION)
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{subject}</title>
    <style>{_HTML_STYLE}    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{subject}</h1>
        </div>
        <div class="content">
            <p>Dear {escape(name)},</p>
            <p>{introduction}</p>
            <div class="appointment-details">
                <p><strong>Date:</strong> {date}</p>
                <p><strong>Time:</strong> {time}</p>
                <p><strong>Doctor:</strong> {escape(doctor)}</p>
            </div>
            <p>{CONTACT_NOTE}</p>
            <p>Thank you for choosing our clinic!</p>
        </div>
        <div class="footer">
            <p>{FOOTER}</p>
        </div>
    </div>
</body>
</html>"""


def build_notification_request(
    notification_type: NotificationType,
    details: AppointmentDetails,
    timezone: tzinfo | None = None,
) -> NotificationRequest:
    """
    Render any appointment notification.

    Reminders get the full reminder template; confirmations, cancellations
    and reschedules share a shorter one.

    Args:
        notification_type: Kind of notification to render
        details: Appointment with patient contact and doctor name
        timezone: Zone used to display the appointment time (UTC by default)

    Returns:
        Channel-independent notification request
    """
    if notification_type is NotificationType.APPOINTMENT_REMINDER:
        return build_reminder_request(details, timezone)

    appointment = details.appointment
    patient = details.patient
    date, time = _display_date_time(appointment.scheduled_at, timezone)
    doctor = details.doctor_name or "TBD"

    return NotificationRequest(
        recipient_name=patient.name,
        recipient_email=patient.email,
        recipient_phone=patient.phone,
        push_tokens=patient.push_tokens,
        notification_type=notification_type,
        subject=subject_for(notification_type),
        body=_notification_text(notification_type, patient.name, date, time, doctor),
        html_body=_notification_html(notification_type, patient.name, date, time, doctor),
        data={
            "type": notification_type.value,
            "appointment_id": str(appointment.id),
            "scheduled_at": appointment.scheduled_at.isoformat(),
        },
    )
