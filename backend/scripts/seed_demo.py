#!/usr/bin/env python
"""Idempotent seed script for a demo after-sales dataset.

Usage:
    python backend/scripts/seed_demo.py                  # seed normally
    python backend/scripts/seed_demo.py --create-schema  # create tables first (no alembic)
    python backend/scripts/seed_demo.py --dry-run        # run logic then rollback (no DB changes)
"""
from __future__ import annotations
import os, sys, argparse
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import aftersales  # type: ignore
from aftersales import create_app, get_db
from aftersales.constants import roles as R
from aftersales.models import Base, Department, User, Customer, Product, SparePart

DEPARTMENTS = ['Air Conditioning', 'Home Appliances']

# username -> (role, department index or None)
USERS = {
    'ceo': (R.COMPANY_MANAGER, None),
    'deputy': (R.DEPUTY_MANAGER, None),
    'ac.manager': (R.DEPARTMENT_MANAGER, 0),
    'ac.supervisor': (R.SECTION_SUPERVISOR, 0),
    'ac.tech1': (R.TECHNICIAN, 0),
    'ac.tech2': (R.TECHNICIAN, 0),
    'home.manager': (R.DEPARTMENT_MANAGER, 1),
    'home.tech1': (R.TECHNICIAN, 1),
    'warehouse': (R.WAREHOUSE_KEEPER, None),
}

SPARE_PARTS = [
    ('Compressor 18K', 'AC-CMP-18K', 'AC', 12, 3, 450000.0),
    ('Capacitor 35uF', 'AC-CAP-35', 'AC', 60, 10, 15000.0),
    ('Washer drain pump', 'HA-WDP-01', 'APPLIANCES', 8, 4, 85000.0),
]

DEMO_PASSWORD = 'password123'


def ensure_departments(session):
    existing = {d.name: d for d in session.execute(select(Department)).scalars().all()}
    created = 0
    for name in DEPARTMENTS:
        if name not in existing:
            dept = Department(name=name, is_active=True)
            session.add(dept)
            existing[name] = dept
            created += 1
    session.flush()
    return [existing[name] for name in DEPARTMENTS], created


def ensure_users(session, departments):
    existing = {u.username for u in session.execute(select(User)).scalars().all()}
    created = 0
    for username, (role, dept_idx) in USERS.items():
        if username in existing:
            continue
        user = User(
            username=username, email=f'{username}@example.com',
            first_name=username.split('.')[0].title(), last_name=role.replace('_', ' ').title(),
            role=role, department_id=departments[dept_idx].id if dept_idx is not None else None,
            is_active=True,
        )
        user.set_password(DEMO_PASSWORD)
        session.add(user)
        created += 1
    session.flush()
    # wire department managers
    for dept in departments:
        if dept.manager_id is None:
            manager = session.execute(
                select(User).where(User.role == R.DEPARTMENT_MANAGER, User.department_id == dept.id)
            ).scalars().first()
            if manager:
                dept.manager_id = manager.id
    return created


def ensure_catalog(session, departments):
    created = 0
    if not session.execute(select(Customer.id)).first():
        session.add_all([
            Customer(name='Demo Customer', phone='0900000000', address='Damascus'),
            Customer(name='Second Customer', phone='0911111111', address='Aleppo'),
        ])
        created += 2
    if not session.execute(select(Product.id)).first():
        session.add_all([
            Product(name='Split AC 18000 BTU', model='AC-18', category='AC', department_id=departments[0].id),
            Product(name='Front-load washer', model='WM-8', category='APPLIANCES', department_id=departments[1].id),
        ])
        created += 2
    known = {p for p in session.execute(select(SparePart.part_number)).scalars()}
    for name, number, category, qty, min_qty, price in SPARE_PARTS:
        if number not in known:
            session.add(SparePart(name=name, part_number=number, category=category,
                                  quantity=qty, min_quantity=min_qty, unit_price=price))
            created += 1
    return created


def seed(session) -> dict:
    departments, dept_created = ensure_departments(session)
    users_created = ensure_users(session, departments)
    catalog_created = ensure_catalog(session, departments)
    return {'departments': dept_created, 'users': users_created, 'catalog': catalog_created}


def main(argv=None):
    parser = argparse.ArgumentParser(description='Seed demo after-sales data (idempotent)')
    parser.add_argument('--dry-run', action='store_true', help='Execute seeding logic then rollback')
    parser.add_argument('--create-schema', action='store_true', help='Create tables from the models before seeding')
    args = parser.parse_args(argv)
    app = create_app()
    with app.app_context():
        if args.create_schema:
            Base.metadata.create_all(aftersales.db_engine)
        session = get_db()
        try:
            counts = seed(session)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] Would create {counts}")
            else:
                session.commit()
                print(f"[INFO] Created {counts}")
            return counts
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
