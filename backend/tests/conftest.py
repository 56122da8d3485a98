import os, sys, pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
# Ensure backend directory is on path so 'aftersales' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from aftersales import create_app, get_db
from aftersales.constants import roles as R
from aftersales.models import Base
from tests.test_utils_seed import (
    make_department, make_user, make_customer, make_product, make_spare_part, set_department_manager,
)

FROZEN_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta):
        self.current = self.current + timedelta(**delta)
        return self.current


@pytest.fixture()
def clock():
    return FrozenClock(FROZEN_NOW)


@pytest.fixture()
def app_instance(clock):
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        'TESTING': True,
    }, clock=clock)
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
        yield app
        get_db().close()
        Base.metadata.drop_all(engine)


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def ctx(app_instance):
    return app_instance.extensions['aftersales']


@pytest.fixture()
def org(app_instance):
    """Two departments with the full role topology, a customer and stocked parts."""
    dept_a = make_department('Air Conditioning')
    dept_b = make_department('Appliances')
    o = SimpleNamespace(
        dept_a=dept_a,
        dept_b=dept_b,
        company=make_user(R.COMPANY_MANAGER, username='company'),
        deputy=make_user(R.DEPUTY_MANAGER, username='deputy'),
        mgr_a=make_user(R.DEPARTMENT_MANAGER, dept_a, username='mgr_a'),
        sup_a=make_user(R.SECTION_SUPERVISOR, dept_a, username='sup_a'),
        tech_a1=make_user(R.TECHNICIAN, dept_a, username='tech_a1'),
        tech_a2=make_user(R.TECHNICIAN, dept_a, username='tech_a2'),
        mgr_b=make_user(R.DEPARTMENT_MANAGER, dept_b, username='mgr_b'),
        sup_b=make_user(R.SECTION_SUPERVISOR, dept_b, username='sup_b'),
        tech_b=make_user(R.TECHNICIAN, dept_b, username='tech_b'),
        keeper=make_user(R.WAREHOUSE_KEEPER, username='keeper'),
        customer=make_customer('Customer One'),
    )
    set_department_manager(dept_a, o.mgr_a)
    set_department_manager(dept_b, o.mgr_b)
    o.product_a = make_product('Split AC', dept_a)
    o.part = make_spare_part('Compressor', 'CMP-1', quantity=5, unit_price=100.0)
    return o
