from sqlalchemy import select, func
from aftersales import get_db
from aftersales.constants import roles as R
from aftersales.models import Notification
from tests.test_utils_seed import jwt_headers, make_spare_part, new_request, principal
from aftersales.services.inventory import add_part


def _warehouse_notices():
    return get_db().execute(
        select(func.count(Notification.id)).where(Notification.type == R.NOTIFY_WAREHOUSE_UPDATE)
    ).scalar_one()


def test_keeper_manages_catalogue(client, org):
    keeper = jwt_headers(org.keeper)
    resp = client.post('/storage', json={
        'name': 'Fan motor', 'part_number': 'FAN-9', 'category': 'AC',
        'quantity': 3, 'min_quantity': 4, 'unit_price': 25.5,
    }, headers=keeper)
    assert resp.status_code == 201, resp.get_json()
    part = resp.get_json()
    assert part['is_low_stock'] is True
    # company, deputy and both department leads of each department
    assert _warehouse_notices() == 6

    url = f"/storage/{part['id']}"
    resp = client.post(f'{url}/adjust-quantity', json={'adjustment': 7, 'reason': 'Delivery'}, headers=keeper)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['quantity'] == 10
    assert resp.get_json()['is_low_stock'] is False
    assert client.post(f'{url}/adjust-quantity', json={'adjustment': -11}, headers=keeper).status_code == 400
    assert client.put(url, json={'quantity': 10}, headers=keeper).status_code == 400
    assert client.put(url, json={}, headers=keeper).status_code == 400
    resp = client.put(url, json={'unit_price': 27.0}, headers=keeper)
    assert resp.status_code == 200
    assert resp.get_json()['quantity'] == 10

    assert client.delete(url, headers=keeper).get_json() == {'deleted': True}
    assert client.get(url, headers=keeper).status_code == 404
    assert _warehouse_notices() == 18


def test_duplicate_part_number_rejected(client, org):
    keeper = jwt_headers(org.keeper)
    resp = client.post('/storage', json={'name': 'Other', 'part_number': 'CMP-1'}, headers=keeper)
    assert resp.status_code == 400
    assert client.post('/storage', json={'name': 'No number'}, headers=keeper).status_code == 400


def test_part_in_use_cannot_be_deleted(client, ctx, org):
    req = new_request(ctx, org.sup_a, org.customer, org.dept_a)
    add_part(ctx, req.id, org.part.id, 1, principal(org.keeper))
    resp = client.delete(f'/storage/{org.part.id}', headers=jwt_headers(org.keeper))
    assert resp.status_code == 400
    assert 'referenced' in resp.get_json()['error']['detail']


def test_catalogue_read_and_write_roles(client, org):
    assert client.get('/storage', headers=jwt_headers(org.mgr_a)).status_code == 200
    assert client.get('/storage', headers=jwt_headers(org.sup_b)).status_code == 200
    assert client.get('/storage', headers=jwt_headers(org.tech_a1)).status_code == 403
    resp = client.post('/storage', json={'name': 'X', 'part_number': 'X-1'}, headers=jwt_headers(org.company))
    assert resp.status_code == 403
    assert client.put(f'/storage/{org.part.id}', json={'quantity': 1}, headers=jwt_headers(org.mgr_a)).status_code == 403


def test_catalogue_filters(client, org):
    make_spare_part('Capacitor', 'CAP-35', quantity=1, min_quantity=5)
    headers = jwt_headers(org.keeper)
    body = client.get('/storage?low_stock=true', headers=headers).get_json()
    assert [p['part_number'] for p in body['data']] == ['CAP-35']
    body = client.get('/storage?search=cmp', headers=headers).get_json()
    assert [p['part_number'] for p in body['data']] == ['CMP-1']
    body = client.get('/storage', headers=headers).get_json()
    # ordered by name
    assert [p['name'] for p in body['data']] == ['Capacitor', 'Compressor']
    assert body['pagination']['total'] == 2


def test_adjust_quantity_endpoint_roles_and_guard(client, org):
    url = f'/storage/{org.part.id}/adjust-quantity'
    assert client.post(url, json={'adjustment': 1}, headers=jwt_headers(org.mgr_a)).status_code == 403
    resp = client.post(url, json={'adjustment': -6}, headers=jwt_headers(org.keeper))
    assert resp.status_code == 400
    assert 'cannot be negative' in resp.get_json()['error']['detail']
    assert client.post(url, json={'adjustment': 'lots'}, headers=jwt_headers(org.keeper)).status_code == 400
    assert client.post('/storage/9999/adjust-quantity', json={'adjustment': 1},
                       headers=jwt_headers(org.keeper)).status_code == 404
    body = client.get(f'/storage/{org.part.id}', headers=jwt_headers(org.keeper)).get_json()
    assert body['quantity'] == 5


def test_categories_listing(client, org):
    keeper = jwt_headers(org.keeper)
    client.post('/storage', json={'name': 'Fan motor', 'part_number': 'FAN-9', 'category': 'AC'}, headers=keeper)
    body = client.get('/storage/categories', headers=jwt_headers(org.sup_b)).get_json()
    assert body == {'categories': ['AC', 'GENERAL']}
    assert client.get('/storage/categories', headers=jwt_headers(org.tech_a1)).status_code == 403
