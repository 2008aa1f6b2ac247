from fastapi.testclient import TestClient

from sigea import models
from sigea.main import app
from sigea.services import PWD_CTX

client = TestClient(app)
USERS = '/sigea/api/users'
RANKINGS = '/sigea/api/rankings'


def _new_user(email='new@utez.edu.mx', role='TEACHER'):
    return {'name': 'Rosa', 'paternal_surname': 'Diaz', 'email': email, 'password': 'pw123', 'role': role}


def test_create_user_hashes_password(session):
    r = client.post(USERS, json=_new_user('Rosa@UTEZ.edu.mx'))
    assert r.status_code == 201
    body = r.json()
    assert body['email'] == 'rosa@utez.edu.mx'
    assert 'password' not in body and 'password_hash' not in body
    stored = session.get(models.User, body['id'])
    assert stored.password_hash != 'pw123'
    assert PWD_CTX.verify('pw123', stored.password_hash)


def test_duplicate_email_is_rejected():
    assert client.post(USERS, json=_new_user()).status_code == 201
    r = client.post(USERS, json=_new_user())
    assert r.status_code == 400
    assert 'already registered' in r.json()['message']


def test_user_crud(session):
    user_id = client.post(USERS, json=_new_user()).json()['id']
    client.post(USERS, json=_new_user('s@utez.edu.mx', role='STUDENT'))
    assert len(client.get(USERS).json()) == 2
    assert [u['id'] for u in client.get(USERS, params={'role': 'TEACHER'}).json()] == [user_id]

    r = client.put(f'{USERS}/{user_id}', json={'name': 'Rosario', 'password': 'changed'})
    assert r.status_code == 200
    assert r.json()['name'] == 'Rosario'
    assert r.json()['paternal_surname'] == 'Diaz'
    assert PWD_CTX.verify('changed', session.get(models.User, user_id).password_hash)

    taken = client.put(f'{USERS}/{user_id}', json={'email': 's@utez.edu.mx'})
    assert taken.status_code == 400

    assert client.delete(f'{USERS}/{user_id}').status_code == 204
    assert client.get(f'{USERS}/{user_id}').status_code == 404
    assert client.delete(f'{USERS}/{user_id}').status_code == 404


def test_teacher_of_a_group_cannot_be_deleted(catalog, group_payload):
    group_id = client.post('/sigea/api/groups', json=group_payload()).json()['id']
    r = client.delete(f"{USERS}/{catalog['teacher_id']}")
    assert r.status_code == 400
    assert 'teaches groups' in r.json()['message']
    # group reads keep resolving the teacher
    assert client.get('/sigea/api/groups').status_code == 200
    assert client.get(f'/sigea/api/groups/{group_id}').json()['teacher_name'] == 'Ana Lopez'
    assert client.get(f"/sigea/api/groups/teacher/{catalog['teacher_id']}").status_code == 200

    client.delete(f'/sigea/api/groups/{group_id}')
    assert client.delete(f"{USERS}/{catalog['teacher_id']}").status_code == 204


def test_enrolled_or_graded_student_cannot_be_deleted(catalog, group_payload):
    group_id = client.post('/sigea/api/groups', json=group_payload()).json()['id']
    client.post(f'/sigea/api/groups/{group_id}/students', json={'student_id': catalog['student_id']})
    assert client.delete(f"{USERS}/{catalog['student_id']}").status_code == 400

    client.post('/sigea/api/qualifications', json={
        'student_id': catalog['student_id'], 'group_id': group_id,
        'subject_id': catalog['subject_id'], 'grade': 9,
    })
    client.delete(f"/sigea/api/groups/{group_id}/students/{catalog['student_id']}")
    r = client.delete(f"{USERS}/{catalog['student_id']}")
    assert r.status_code == 400
    assert 'qualifications' in r.json()['message']


def test_ranked_users_cannot_be_deleted(catalog):
    client.post(RANKINGS, json={'teacher_id': catalog['other_teacher_id'], 'student_id': catalog['student_id'], 'star': 4})
    assert client.delete(f"{USERS}/{catalog['other_teacher_id']}").status_code == 400
    assert client.delete(f"{USERS}/{catalog['student_id']}").status_code == 400
    assert client.get(f"{RANKINGS}/teacher/{catalog['other_teacher_id']}").json()[0]['star'] == 4


def test_supervisor_campus_assignment(catalog):
    payload = {'supervisor_id': catalog['supervisor_id'], 'campus_id': catalog['campus_id']}
    r = client.post(f'{USERS}/supervisors/campuses', json=payload)
    assert r.status_code == 201
    assert [c['id'] for c in r.json()] == [catalog['campus_id']]
    # assigning twice keeps a single link
    assert len(client.post(f'{USERS}/supervisors/campuses', json=payload).json()) == 1

    listed = client.get(f"{USERS}/supervisors/{catalog['supervisor_id']}/campuses")
    assert listed.json()[0]['name'] == 'Emiliano Zapata'

    removed = client.request('DELETE', f'{USERS}/supervisors/campuses', json=payload)
    assert removed.status_code == 204
    again = client.request('DELETE', f'{USERS}/supervisors/campuses', json=payload)
    assert again.status_code == 404


def test_supervisor_campus_requires_supervisor_and_campus(catalog):
    not_supervisor = {'supervisor_id': catalog['teacher_id'], 'campus_id': catalog['campus_id']}
    assert client.post(f'{USERS}/supervisors/campuses', json=not_supervisor).status_code == 400
    no_campus = {'supervisor_id': catalog['supervisor_id'], 'campus_id': 999}
    assert client.post(f'{USERS}/supervisors/campuses', json=no_campus).status_code == 400
    missing_field = {'supervisor_id': catalog['supervisor_id']}
    r = client.post(f'{USERS}/supervisors/campuses', json=missing_field)
    assert r.status_code == 400
    assert 'campus_id' in r.json()['fields']


def test_rankings(catalog):
    teacher_id = catalog['teacher_id']
    for star in (4, 5):
        r = client.post(RANKINGS, json={'teacher_id': teacher_id, 'student_id': catalog['student_id'], 'star': star})
        assert r.status_code == 201
    created = r.json()
    assert client.get(f"{RANKINGS}/{created['id']}").json()['star'] == 5
    assert len(client.get(RANKINGS).json()) == 2
    assert len(client.get(f'{RANKINGS}/teacher/{teacher_id}').json()) == 2
    assert client.get(f"{RANKINGS}/teacher/{catalog['other_teacher_id']}").json() == []

    summary = client.get(f'{RANKINGS}/teacher/{teacher_id}/summary').json()
    assert summary == {'teacher_id': teacher_id, 'count': 2, 'average': 4.5}
    empty = client.get(f"{RANKINGS}/teacher/{catalog['other_teacher_id']}/summary").json()
    assert empty['count'] == 0 and empty['average'] is None
    assert client.get(f'{RANKINGS}/teacher/999/summary').status_code == 404
    assert client.get(f'{RANKINGS}/999').status_code == 404


def test_ranking_validation(catalog):
    base = {'teacher_id': catalog['teacher_id'], 'student_id': catalog['student_id']}
    assert client.post(RANKINGS, json={**base, 'star': 0}).status_code == 400
    assert client.post(RANKINGS, json={**base, 'star': 6}).status_code == 400
    not_teacher = {**base, 'teacher_id': catalog['student_id'], 'star': 3}
    assert client.post(RANKINGS, json=not_teacher).status_code == 400
    unknown = {**base, 'student_id': 999, 'star': 3}
    assert client.post(RANKINGS, json=unknown).status_code == 400
