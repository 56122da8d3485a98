from aftersales.constants import roles as R
from tests.test_utils_seed import jwt_headers, new_request
from tests.test_lifecycle_helpers import advance_to, assert_transition


def _create(client, headers, org, **overrides):
    payload = {
        'customer_id': org.customer.id,
        'department_id': org.dept_a.id,
        'issue_description': 'Compressor noise',
        'warranty_status': R.OUT_OF_WARRANTY,
        'execution_method': R.WORKSHOP,
    }
    payload.update(overrides)
    return client.post('/requests', json=payload, headers=headers)


def test_full_lifecycle_over_http(client, org):
    sup = jwt_headers(org.sup_a)
    tech = jwt_headers(org.tech_a1)
    resp = _create(client, sup, org, priority='HIGH')
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    rid = body['id']
    assert body['status'] == R.STATUS_NEW
    assert body['request_number'] == 'REQ260302-001'
    assert body['sla_due_date'] == '2026-03-12T09:00:00Z'

    resp = client.put(f'/requests/{rid}/assign', json={'technician_id': org.tech_a1.id}, headers=sup)
    assert resp.status_code == 200 and resp.get_json()['status'] == R.STATUS_ASSIGNED
    for status in (R.STATUS_UNDER_INSPECTION, R.STATUS_WAITING_PARTS, R.STATUS_IN_REPAIR, R.STATUS_COMPLETED):
        assert_transition(client, rid, status, tech)
    assert_transition(client, rid, R.STATUS_IN_REPAIR, tech, expected_status=400)

    resp = client.put(f'/requests/{rid}/close', json={'final_notes': 'done', 'customer_satisfaction': 4}, headers=sup)
    assert resp.status_code == 200
    assert resp.get_json()['status'] == R.STATUS_CLOSED
    assert resp.get_json()['customer_satisfaction'] == 4

    acts = client.get(f'/requests/{rid}/activities', headers=sup).get_json()
    assert acts['pagination']['total'] == 8
    assert acts['data'][0]['new_value'] == R.STATUS_CLOSED


def test_validation_errors_are_400_envelopes(client, org):
    sup = jwt_headers(org.sup_a)
    resp = _create(client, sup, org, issue_description='')
    assert resp.status_code == 400
    assert resp.get_json()['error']['status'] == 400
    assert _create(client, sup, org, warranty_status='SOMETIMES').status_code == 400
    assert _create(client, sup, org, customer_id='abc').status_code == 400
    rid = _create(client, sup, org).get_json()['id']
    resp = client.put(f'/requests/{rid}/status', json={}, headers=sup)
    assert resp.status_code == 400
    resp = client.put(f'/requests/{rid}/status', json={'status': R.STATUS_COMPLETED}, headers=sup)
    assert resp.status_code == 400
    assert 'NEW -> COMPLETED' in resp.get_json()['error']['detail']


def test_visibility_is_role_scoped(client, ctx, org):
    a = new_request(ctx, org.sup_a, org.customer, org.dept_a)
    b = new_request(ctx, org.sup_b, org.customer, org.dept_b)
    own = new_request(ctx, org.tech_a2, org.customer, org.dept_a)

    def ids(user, query=''):
        resp = client.get(f'/requests{query}', headers=jwt_headers(user))
        assert resp.status_code == 200, resp.get_json()
        return sorted(r['id'] for r in resp.get_json()['data'])

    assert ids(org.company) == sorted([a.id, b.id, own.id])
    assert ids(org.mgr_a) == sorted([a.id, own.id])
    assert ids(org.sup_b) == [b.id]
    assert ids(org.tech_a2) == [own.id]
    assert ids(org.tech_a1) == []
    assert ids(org.keeper) == []
    assert ids(org.company, f'?department_id={org.dept_b.id}') == [b.id]

    assert client.get(f'/requests/{a.id}', headers=jwt_headers(org.mgr_b)).status_code == 403
    assert client.get(f'/requests/{a.id}', headers=jwt_headers(org.deputy)).status_code == 200
    assert client.get('/requests/999', headers=jwt_headers(org.deputy)).status_code == 404


def test_list_filters_sort_and_pagination(client, ctx, org):
    first = new_request(ctx, org.mgr_a, org.customer, org.dept_a, priority='LOW')
    second = new_request(ctx, org.mgr_a, org.customer, org.dept_a, priority='URGENT', issue_description='Smoke from unit')
    headers = jwt_headers(org.company)
    body = client.get('/requests?priority=URGENT', headers=headers).get_json()
    assert [r['id'] for r in body['data']] == [second.id]
    body = client.get('/requests?search=smoke', headers=headers).get_json()
    assert [r['id'] for r in body['data']] == [second.id]
    body = client.get('/requests?sort=request_number&limit=1&offset=1', headers=headers).get_json()
    assert [r['id'] for r in body['data']] == [second.id]
    assert body['pagination'] == {'total': 2, 'limit': 1, 'offset': 1, 'returned': 1}
    body = client.get('/requests?sort=-request_number', headers=headers).get_json()
    assert [r['id'] for r in body['data']] == [second.id, first.id]
    assert client.get('/requests?sort=bogus', headers=headers).status_code == 400
    assert client.get('/requests?status=LIMBO', headers=headers).status_code == 400
    assert client.get('/requests?limit=x', headers=headers).status_code == 400


def test_update_details(client, ctx, org):
    req = new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    resp = client.put(f'/requests/{req.id}', json={'priority': 'URGENT', 'issue_description': 'Worse now'},
                      headers=jwt_headers(org.sup_a))
    assert resp.status_code == 200
    assert resp.get_json()['priority'] == 'URGENT'
    assert resp.get_json()['issue_description'] == 'Worse now'
    resp = client.put(f'/requests/{req.id}', json={'priority': 'URGENT'}, headers=jwt_headers(org.keeper))
    assert resp.status_code == 403


def test_costs_endpoints(client, ctx, org):
    req = new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    headers = jwt_headers(org.sup_a)
    resp = client.post(f'/requests/{req.id}/costs', json={'cost_type': 'LABOR', 'amount': 40}, headers=headers)
    assert resp.status_code == 201
    assert client.post(f'/requests/{req.id}/costs', json={'cost_type': 'LABOR', 'amount': 0}, headers=headers).status_code == 400
    body = client.get(f'/requests/{req.id}/costs', headers=headers).get_json()
    assert len(body['data']) == 1
    assert body['summary']['costs_total'] == 40
    assert client.get(f'/requests/{req.id}/costs', headers=jwt_headers(org.sup_b)).status_code == 403


def test_parts_endpoints(client, ctx, org):
    req = new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    keeper = jwt_headers(org.keeper)
    resp = client.post(f'/requests/{req.id}/parts', json={'spare_part_id': org.part.id, 'quantity_used': 2}, headers=keeper)
    assert resp.status_code == 201, resp.get_json()
    rp_id = resp.get_json()['id']
    assert client.post(f'/requests/{req.id}/parts', json={'spare_part_id': org.part.id, 'quantity_used': 9},
                       headers=keeper).status_code == 400
    assert client.post(f'/requests/{req.id}/parts', json={'spare_part_id': org.part.id, 'quantity_used': 1},
                       headers=jwt_headers(org.mgr_a)).status_code == 403

    listed = client.get(f'/requests/{req.id}/parts', headers=jwt_headers(org.sup_a)).get_json()
    assert listed['data'][0]['part_name'] == 'Compressor'
    assert listed['total_cost'] == 200.0

    resp = client.put(f'/request-parts/{rp_id}', json={'quantity_used': 3}, headers=keeper)
    assert resp.status_code == 200 and resp.get_json()['total_cost'] == 300.0
    assert client.get(f'/storage/{org.part.id}', headers=keeper).get_json()['quantity'] == 2
    resp = client.delete(f'/request-parts/{rp_id}', headers=keeper)
    assert resp.get_json() == {'deleted': True, 'restored_quantity': 3}
    assert client.get(f'/storage/{org.part.id}', headers=keeper).get_json()['quantity'] == 5
    assert client.delete(f'/request-parts/{rp_id}', headers=keeper).status_code == 404


def test_user_activity_listing(client, ctx, org):
    new_request(ctx, org.sup_a, org.customer, org.dept_a)
    body = client.get('/requests/activities', headers=jwt_headers(org.sup_a)).get_json()
    assert body['pagination']['total'] == 1
    assert client.get(f'/requests/activities?user_id={org.sup_a.id}', headers=jwt_headers(org.tech_a1)).status_code == 403
    body = client.get(f'/requests/activities?user_id={org.sup_a.id}', headers=jwt_headers(org.mgr_a)).get_json()
    assert body['data'][0]['activity_type'] == R.ACTIVITY_CREATED


def test_status_change_records_comment(client, ctx, org):
    req = new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    sup = jwt_headers(org.sup_a)
    client.put(f'/requests/{req.id}/assign', json={'technician_id': org.tech_a1.id}, headers=sup)
    resp = client.put(f'/requests/{req.id}/status',
                      json={'status': R.STATUS_UNDER_INSPECTION, 'comment': 'Waiting on compressor'}, headers=sup)
    assert resp.status_code == 200, resp.get_json()
    resp = client.put(f'/requests/{req.id}/status',
                      json={'status': R.STATUS_WAITING_PARTS, 'notes': 'Ordered CMP-1'}, headers=sup)
    assert resp.status_code == 200, resp.get_json()
    acts = client.get(f'/requests/{req.id}/activities', headers=sup).get_json()
    descriptions = [a['description'] for a in acts['data']]
    assert any(d.endswith('Comment: Waiting on compressor') for d in descriptions)
    assert any(d.endswith('Comment: Ordered CMP-1') for d in descriptions)


def test_technician_cannot_close_over_http(client, ctx, org):
    req = new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    advance_to(ctx, req.id, R.STATUS_COMPLETED, org.mgr_a, org.tech_a1)
    assert_transition(client, req.id, R.STATUS_CLOSED, jwt_headers(org.tech_a1), expected_status=403)
    assert_transition(client, req.id, R.STATUS_CLOSED, jwt_headers(org.mgr_a))
