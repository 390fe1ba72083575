"""Courses blueprint - catalog browsing and seller management."""
from flask import Blueprint, g, request

from marketplace.database import get_session
from marketplace.decorators.permissions import require_role
from marketplace.schemas import parse_body
from marketplace.schemas.course import CourseCreateRequest, CourseUpdateRequest, ShippingOptionRequest
from marketplace.services import course_service
from marketplace.utils.responses import success

courses_bp = Blueprint('courses', __name__, url_prefix='/api/v1/courses')

EDITOR_ROLES = ('SELLER', 'ADMIN', 'SUPER_ADMIN')


@courses_bp.route('', methods=['GET'])
def list_courses():
    """Public catalog of active courses (?q= filters by title)."""
    db_session = get_session()
    courses = course_service.list_courses(db_session, search=request.args.get('q', '').strip() or None)
    return success([c.to_dict() for c in courses], 'Courses retrieved')


@courses_bp.route('/<int:course_id>', methods=['GET'])
def get_course(course_id):
    db_session = get_session()
    course = course_service.get_course(db_session, course_id)
    return success(course.to_dict(), 'Course retrieved')


@courses_bp.route('', methods=['POST'])
@require_role(*EDITOR_ROLES)
def create_course():
    body = parse_body(CourseCreateRequest)
    db_session = get_session()
    course = course_service.create_course(db_session, g.principal.id, body)
    return success(course.to_dict(), 'Course created', 201)


@courses_bp.route('/<int:course_id>', methods=['PATCH'])
@require_role(*EDITOR_ROLES)
def update_course(course_id):
    body = parse_body(CourseUpdateRequest)
    db_session = get_session()
    course = course_service.update_course(db_session, course_id, body, g.principal)
    return success(course.to_dict(), 'Course updated')


@courses_bp.route('/<int:course_id>/shipping-options', methods=['POST'])
@require_role(*EDITOR_ROLES)
def add_shipping_option(course_id):
    body = parse_body(ShippingOptionRequest)
    db_session = get_session()
    option = course_service.add_shipping_option(db_session, course_id, body, g.principal)
    return success(option.to_dict(), 'Shipping option added', 201)
