import pytest
from fastapi.testclient import TestClient

from sigea import services
from sigea.config import Settings
from sigea.main import app

client = TestClient(app)
API = '/sigea/api'


def test_catalog_chain():
    campus = client.post(f'{API}/campuses', json={'name': 'Norte'})
    assert campus.status_code == 201
    career = client.post(f'{API}/careers', json={'name': 'TI', 'campus_id': campus.json()['id']})
    assert career.status_code == 201
    curriculum = client.post(f'{API}/curricula', json={'name': 'P1', 'career_id': career.json()['id']})
    assert curriculum.status_code == 201
    subject = client.post(f'{API}/subjects', json={'name': 'Redes', 'curriculum_id': curriculum.json()['id']})
    assert subject.status_code == 201

    for path, created in (('campuses', campus), ('careers', career), ('curricula', curriculum), ('subjects', subject)):
        listed = client.get(f'{API}/{path}').json()
        assert [x['id'] for x in listed] == [created.json()['id']]
        assert client.get(f"{API}/{path}/{created.json()['id']}").json() == created.json()
        assert client.get(f'{API}/{path}/999').status_code == 404


def test_catalog_rejects_unknown_parent_and_duplicate_campus():
    assert client.post(f'{API}/careers', json={'name': 'TI', 'campus_id': 42}).status_code == 400
    assert client.post(f'{API}/curricula', json={'name': 'P', 'career_id': 42}).status_code == 400
    assert client.post(f'{API}/subjects', json={'name': 'S', 'curriculum_id': 42}).status_code == 400
    client.post(f'{API}/campuses', json={'name': 'Sur'})
    assert client.post(f'{API}/campuses', json={'name': 'Sur'}).status_code == 400


def test_error_body_shape():
    r = client.get(f'{API}/groups/12345')
    assert r.status_code == 404
    body = r.json()
    assert body['status'] == 404
    assert body['error'] == 'not found'
    assert 'group not found' in body['message']
    assert 'timestamp' in body


def test_request_id_header_exists_and_is_echoed():
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert r.headers['X-Request-ID']
    echoed = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert echoed.headers['X-Request-ID'] == 'abc123'


def test_unexpected_error_hides_details_and_keeps_request_id(monkeypatch):
    def broken(self):
        raise RuntimeError("internal detail: 'NoneType' object has no attribute 'id'")

    monkeypatch.setattr(services.GroupService, 'list', broken)
    quiet_client = TestClient(app, raise_server_exceptions=False)
    r = quiet_client.get(f'{API}/groups', headers={'X-Request-ID': 'req-500'})
    assert r.status_code == 500
    body = r.json()
    assert body['error'] == 'internal server error'
    assert 'NoneType' not in body['message']
    assert 'req-500' in body['message']
    assert r.headers['X-Request-ID'] == 'req-500'


def test_settings_validation(monkeypatch):
    monkeypatch.setenv('LOG_LEVEL', 'chatty')
    with pytest.raises(RuntimeError):
        Settings()
    monkeypatch.setenv('LOG_LEVEL', 'debug')
    monkeypatch.setenv('ENV', 'prod')
    monkeypatch.delenv('SIGEA_DATABASE_URL', raising=False)
    monkeypatch.delenv('ALLOW_SQLITE', raising=False)
    with pytest.raises(RuntimeError):
        Settings()
    monkeypatch.setenv('SIGEA_DATABASE_URL', 'postgresql://db/sigea')
    assert Settings().LOG_LEVEL == 'DEBUG'
