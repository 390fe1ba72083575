"""
Course catalog service.

Price and discount changes only affect carts and future checkouts; existing
checkouts keep the amounts captured when they were created.
"""
import logging

from marketplace.models import Course, ShippingOption, UserRole
from marketplace.exceptions import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

ADMIN_ROLES = (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)


def create_course(session, seller_id: int, data) -> Course:
    course = Course(
        seller_id=seller_id,
        title=data.title,
        description=data.description,
        price=data.price,
        discount=data.discount,
        active=True,
    )
    session.add(course)
    session.commit()
    logger.info(f"[COURSE] Created course {course.id} by seller {seller_id}")
    return course


def get_course(session, course_id: int, include_inactive: bool = False) -> Course:
    query = session.query(Course).filter(Course.id == course_id)
    if not include_inactive:
        query = query.filter(Course.active == True)  # noqa: E712
    course = query.first()
    if not course:
        raise NotFoundError('Course not found')
    return course


def list_courses(session, search: str = None):
    query = session.query(Course).filter(Course.active == True)  # noqa: E712
    if search:
        query = query.filter(Course.title.ilike(f'%{search[:100]}%'))
    return query.order_by(Course.title).all()


def _ensure_can_edit(course: Course, principal):
    if principal.role in ADMIN_ROLES:
        return
    if course.seller_id != principal.id:
        raise ForbiddenError('You can only edit your own courses')


def update_course(session, course_id: int, data, principal) -> Course:
    """Partial update (title, description, price, discount, active)."""
    course = get_course(session, course_id, include_inactive=True)
    _ensure_can_edit(course, principal)

    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(course, field, value)

    session.commit()
    logger.info(f"[COURSE] Updated course {course.id}: {sorted(changes)}")
    return course


def add_shipping_option(session, course_id: int, data, principal) -> ShippingOption:
    course = get_course(session, course_id, include_inactive=True)
    _ensure_can_edit(course, principal)

    if data.is_default:
        for option in course.shipping_options:
            option.is_default = False

    option = ShippingOption(
        course_id=course.id,
        carrier=data.carrier,
        country_code=data.country_code.upper(),
        cost=data.cost,
        delivery_min=data.delivery_min,
        delivery_max=data.delivery_max,
        is_default=data.is_default,
    )
    session.add(option)
    session.commit()
    return option
