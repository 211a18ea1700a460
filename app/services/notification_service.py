import logging
import smtplib
from email.message import EmailMessage

from app.config import settings

logger = logging.getLogger(__name__)


def _build_order_link(order_id: int) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/{settings.ORDER_DETAILS_PATH.strip('/')}/{order_id}"


def _send_email(to_email: str, subject: str, text_body: str, html_body: str | None = None) -> None:
    if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
        raise RuntimeError("SMTP is not configured (SMTP_HOST and SMTP_FROM_EMAIL are required).")

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    message["To"] = to_email
    message.set_content(text_body)
    if html_body:
        message.add_alternative(html_body, subtype="html")

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as smtp:
        smtp.ehlo()
        if settings.SMTP_USE_TLS:
            smtp.starttls()
            smtp.ehlo()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(message)


def send_payment_submitted_email(
    to_email: str, display_name: str | None, order_number: str, reference_code: str
) -> None:
    name = display_name or "there"
    text = (
        f"Hi {name},\n\n"
        f"We received transaction code {reference_code} for order {order_number}.\n"
        "You will receive a confirmation email once the payment is verified."
    )
    _send_email(to_email=to_email, subject=f"Payment received for order {order_number}", text_body=text)


def send_payment_confirmed_email(
    to_email: str, display_name: str | None, order_id: int, order_number: str
) -> None:
    link = _build_order_link(order_id)
    name = display_name or "there"
    text = (
        f"Hi {name},\n\n"
        f"Your payment for order {order_number} has been verified.\n"
        f"Track your order here: {link}"
    )
    html = (
        f"<p>Hi {name},</p>"
        f"<p>Your payment for order <strong>{order_number}</strong> has been verified.</p>"
        f"<p><a href=\"{link}\">View order</a></p>"
    )
    _send_email(to_email=to_email, subject=f"Payment confirmed for order {order_number}", text_body=text, html_body=html)


def send_payment_rejected_email(
    to_email: str, display_name: str | None, order_id: int, order_number: str, reason: str | None
) -> None:
    link = _build_order_link(order_id)
    name = display_name or "there"
    text = (
        f"Hi {name},\n\n"
        f"We could not verify the payment for order {order_number}.\n"
        f"Reason: {reason or 'not specified'}\n\n"
        f"You can submit a new transaction code here: {link}"
    )
    html = (
        f"<p>Hi {name},</p>"
        f"<p>We could not verify the payment for order <strong>{order_number}</strong>.</p>"
        f"<p>Reason: {reason or 'not specified'}</p>"
        f"<p><a href=\"{link}\">Submit a new transaction code</a></p>"
    )
    _send_email(to_email=to_email, subject=f"Payment not verified for order {order_number}", text_body=text, html_body=html)


def dispatch(send, *args) -> None:
    """Run a notification in the background, logging instead of raising on failure."""
    if not settings.NOTIFICATIONS_ENABLED:
        return
    try:
        send(*args)
    except Exception:
        logger.exception("Failed to send %s notification", send.__name__)
