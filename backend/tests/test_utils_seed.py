"""Test seeding utilities to reduce duplication.

Org fixtures (departments, users per role, customers, products, spare parts) are written
through the scoped session and committed immediately so the services, which open their
own sessions, see them.
"""
from typing import Optional
from flask_jwt_extended import create_access_token
from aftersales import get_db
from aftersales.constants import roles as R
from aftersales.models import Department, User, Customer, Product, SparePart
from aftersales.routes.auth import token_claims
from aftersales.services.context import Principal


def _save(obj):
    session = get_db()
    session.add(obj); session.commit(); session.refresh(obj)
    return obj


def make_department(name: str, is_active: bool = True) -> Department:
    return _save(Department(name=name, is_active=is_active))


def set_department_manager(dept: Department, manager: User) -> Department:
    session = get_db()
    row = session.get(Department, dept.id)
    row.manager_id = manager.id
    session.commit()
    dept.manager_id = manager.id
    return dept


def make_user(role: str, department: Optional[Department] = None, username: Optional[str] = None,
              password: str = 'pw', is_active: bool = True) -> User:
    username = username or f'{role.lower()}_{department.id if department else "global"}'
    user = User(
        username=username,
        email=f'{username}@example.com',
        first_name=username,
        last_name='',
        role=role,
        department_id=department.id if department else None,
        is_active=is_active,
        password_hash='',
    )
    user.set_password(password)
    return _save(user)


def make_customer(name: str = 'Customer') -> Customer:
    return _save(Customer(name=name, phone='0999000000', address='Main street'))


def make_product(name: str, department: Optional[Department] = None) -> Product:
    return _save(Product(name=name, model='M1', category='GENERAL', department_id=department.id if department else None))


def make_spare_part(name: str, part_number: str, quantity: int = 10, unit_price: float = 10.0,
                    min_quantity: int = 2) -> SparePart:
    return _save(SparePart(name=name, part_number=part_number, quantity=quantity,
                           unit_price=unit_price, min_quantity=min_quantity))


def principal(user: User) -> Principal:
    return Principal(id=user.id, role=user.role, department_id=user.department_id, name=user.full_name)


def jwt_headers(user: User):
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=token_claims(user))
    return {'Authorization': f'Bearer {token}'}


def new_request(ctx, actor: User, customer: Customer, department: Optional[Department] = None,
                warranty_status: str = R.OUT_OF_WARRANTY, execution_method: str = R.WORKSHOP, **extra):
    from aftersales.services.requests import create_request
    return create_request(
        ctx, principal(actor),
        customer_id=customer.id,
        department_id=department.id if department else None,
        issue_description=extra.pop('issue_description', 'Unit does not cool'),
        warranty_status=warranty_status,
        execution_method=execution_method,
        **extra,
    )


__all__ = [
    'make_department', 'set_department_manager', 'make_user', 'make_customer', 'make_product',
    'make_spare_part', 'principal', 'jwt_headers', 'new_request',
]
