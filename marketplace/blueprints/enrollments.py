"""Enrollments and company credential listings."""
from flask import Blueprint, g

from marketplace.database import get_session
from marketplace.decorators.permissions import require_auth, require_role
from marketplace.models import Company, EmployeeCredential, Enrollment
from marketplace.exceptions import NotFoundError
from marketplace.utils.responses import success

enrollments_bp = Blueprint('enrollments', __name__, url_prefix='/api/v1')


@enrollments_bp.route('/enrollments', methods=['GET'])
@require_auth
def list_enrollments():
    """Courses the caller has access to."""
    db_session = get_session()
    enrollments = (
        db_session.query(Enrollment)
        .filter(Enrollment.user_id == g.principal.id)
        .order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
        .all()
    )
    return success([e.to_dict() for e in enrollments], 'Enrollments retrieved')


@enrollments_bp.route('/company/credentials', methods=['GET'])
@require_role('COMPANY')
def list_company_credentials():
    """Employee logins issued to the caller's company (passwords are never returned)."""
    db_session = get_session()
    company = db_session.query(Company).filter_by(user_id=g.principal.id).first()
    if not company:
        raise NotFoundError('Company profile not found')

    credentials = (
        db_session.query(EmployeeCredential)
        .filter(EmployeeCredential.company_id == company.id)
        .order_by(EmployeeCredential.id)
        .all()
    )
    return success([c.to_dict() for c in credentials], 'Credentials retrieved')
