"""
Email service for payment receipts and employee credentials.
Uses Flask-Mail for SMTP integration with UTF-8 support.
"""
import logging
from datetime import datetime
from html import escape
from flask import current_app
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents 500 errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def send_email(subject: str, recipient: str, html: str, text: str | None = None) -> bool:
    """
    Send an HTML email.

    Args:
        subject: Email subject
        recipient: Recipient email
        html: HTML body
        text: Plain text body (optional)

    Returns:
        True if sent, False when mail is disabled or delivery failed
    """
    try:
        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Email '{subject}' skipped for {recipient}")
            return False

        msg = Message(
            subject=subject,
            recipients=[recipient],
            body=text or '',
            html=html
        )
        mail.send(msg)
        logger.info(f"[EMAIL] Sent '{subject}' to {recipient}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send email to {recipient}: {e}")
        return False


def build_receipt_email(customer_name: str, course_titles: list, receipt_url: str) -> tuple:
    """Return (subject, html) for the payment receipt email."""
    team = current_app.config.get('PLATFORM_NAME', 'E-learning Team')
    titles = ', '.join(course_titles) or 'your courses'
    subject = f"Your payment for {titles} is successful"
    html = f"""
    <div style="font-family: Arial, sans-serif; color: #333; line-height: 1.6; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2 style="background-color: #46BEF2; padding: 20px; text-align: center;">Payment Successful</h2>
        <p>Hello <strong>{escape(customer_name or 'Customer')}</strong>,</p>
        <p>Your payment for <strong>{escape(titles)}</strong> was successful.</p>
        <p>You can view your payment receipt below:</p>
        <p style="text-align: center;">
            <a href="{escape(receipt_url)}" target="_blank">View Receipt</a>
        </p>
        <p>Thank you,<br/>{escape(team)}</p>
        <p style="font-size: 12px; color: #888;">&copy; {datetime.now().year} {escape(team)}. All rights reserved.</p>
    </div>
    """
    return subject, html


def build_credential_email(company_name: str, course_title: str, login_email: str, password: str) -> tuple:
    """Return (subject, html) for a generated employee credential."""
    team = current_app.config.get('PLATFORM_NAME', 'E-learning Team')
    login_url = current_app.config.get('CREDENTIAL_LOGIN_URL', '')
    subject = f"New employee access for {course_title}"
    html = f"""
    <div style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2>Employee access for {escape(course_title)}</h2>
        <p>Hello <strong>{escape(company_name)}</strong>,</p>
        <p>A seat was purchased for <strong>{escape(course_title)}</strong>. Share these credentials with your employee:</p>
        <table cellpadding="8" style="border: 1px solid #e0e0e0;">
            <tr><td>Login email</td><td><strong>{escape(login_email)}</strong></td></tr>
            <tr><td>Password</td><td><strong>{escape(password)}</strong></td></tr>
        </table>
        <p><a href="{escape(login_url)}">Sign in</a> and change the password after the first login.</p>
        <p>{escape(team)}</p>
    </div>
    """
    return subject, html
