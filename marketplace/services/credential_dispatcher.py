"""
Employee credential delivery.

Credential rows with ``is_sent = False`` act as the pending-notification
outbox: they are written in the purchase transaction, and delivery happens
after commit. Each send is isolated so one bad delivery never blocks the rest.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import NamedTuple
from flask import current_app
from werkzeug.security import generate_password_hash

from marketplace.metrics import credential_emails_total
from marketplace.models import Company, EmployeeCredential
from marketplace.services.email_service import build_credential_email, send_email

logger = logging.getLogger(__name__)


class IssuedCredential(NamedTuple):
    """A freshly committed credential and its one-time plaintext password."""
    credential_id: int
    plaintext: str


def generate_password() -> str:
    nbytes = current_app.config.get('CREDENTIAL_PASSWORD_BYTES', 9)
    return secrets.token_urlsafe(nbytes)


def hash_password(password: str) -> str:
    return generate_password_hash(password, method='scrypt')


def send_credential(session, credential: EmployeeCredential, plaintext: str, company: Company) -> bool:
    """
    Email one credential to the company contact address and mark it sent.

    Never raises; failures are logged and leave ``is_sent`` False.
    """
    try:
        subject, html = build_credential_email(
            company.company_name,
            credential.course.title if credential.course else 'your course',
            credential.login_email,
            plaintext,
        )
        if not send_email(subject, company.company_email, html):
            logger.warning(f"[CREDENTIALS] Delivery failed for credential {credential.id}")
            credential_emails_total.labels(outcome='failed').inc()
            return False

        credential.is_sent = True
        credential.sent_at = datetime.now(timezone.utc)
        session.commit()
        credential_emails_total.labels(outcome='sent').inc()
        return True

    except Exception as e:
        session.rollback()
        logger.exception(f"[CREDENTIALS] Error sending credential {credential.id}: {e}")
        credential_emails_total.labels(outcome='error').inc()
        return False


def send_issued_credentials(session, company_id: int, issued: list) -> dict:
    """Deliver credentials issued by a just-committed company purchase."""
    sent = failed = 0
    company = session.get(Company, company_id)
    for item in issued:
        credential = session.get(EmployeeCredential, item.credential_id)
        if credential is None or company is None:
            logger.error(f"[CREDENTIALS] Credential {item.credential_id} vanished before delivery")
            failed += 1
            continue
        if send_credential(session, credential, item.plaintext, company):
            sent += 1
        else:
            failed += 1

    logger.info(f"[CREDENTIALS] Company {company_id}: {sent} sent, {failed} failed")
    return {'sent': sent, 'failed': failed}


def dispatch_pending_credentials(session, company_id: int = None) -> dict:
    """
    Drain credentials that were never delivered.

    The original plaintext is gone, so each pending credential gets a fresh
    password (credential and employee account re-hashed and committed)
    before it is emailed.
    """
    query = session.query(EmployeeCredential).filter(EmployeeCredential.is_sent == False)  # noqa: E712
    if company_id is not None:
        query = query.filter(EmployeeCredential.company_id == company_id)

    sent = failed = 0
    for credential in query.order_by(EmployeeCredential.id).all():
        try:
            password = generate_password()
            password_hash = hash_password(password)
            credential.password_hash = password_hash
            if credential.user is not None:
                credential.user.password_hash = password_hash
            session.commit()
        except Exception as e:
            session.rollback()
            logger.exception(f"[CREDENTIALS] Could not rotate credential {credential.id}: {e}")
            failed += 1
            continue

        if send_credential(session, credential, password, credential.company):
            sent += 1
        else:
            failed += 1

    logger.info(f"[CREDENTIALS] Pending dispatch: {sent} sent, {failed} failed")
    return {'sent': sent, 'failed': failed}
