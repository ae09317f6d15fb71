import json

import pytest

from abstract_portal.extensions import db
from abstract_portal.models import Abstract, AbstractCategory, AbstractStatus

BASE = '/api/v1/abstracts'


@pytest.fixture
def delegate_headers(create_user, login):
    create_user(email='delegate@example.com')
    return login('delegate@example.com', 'Delegate123')


@pytest.fixture
def owner_headers(login):
    """Headers for the default owner created by ``create_abstract``."""
    def _owner_headers():
        return login('owner@example.com', 'Delegate123')
    return _owner_headers


class TestSubmission:

    def test_delegate_submits_pending_abstract(self, client, delegate_headers):
        response = client.post(BASE, headers=delegate_headers, content_type='application/json',
                               data=json.dumps({
                                   'title': 'Graft failure in aplastic anemia',
                                   'presenter_name': 'Dr. Delegate',
                                   'content': 'Background and methods.',
                                   'category': 'Poster',
                                   'status': 'approved',
                               }))

        assert response.status_code == 201
        abstract = json.loads(response.data)['abstract']
        assert abstract['status'] == 'pending'
        assert abstract['category'] == 'Poster'
        assert abstract['abstract_number'].startswith('ABST-')
        assert abstract['presenter_email'] == 'delegate@example.com'

    def test_missing_fields(self, client, delegate_headers):
        response = client.post(BASE, headers=delegate_headers, content_type='application/json',
                               data=json.dumps({'title': 'No content'}))

        assert response.status_code == 400
        fields = json.loads(response.data)['fields']
        assert 'content' in fields
        assert 'presenter_name' in fields

    def test_list_mine_only_returns_own(self, client, delegate_headers, create_abstract):
        create_abstract(title='Someone else')
        client.post(BASE, headers=delegate_headers, content_type='application/json',
                    data=json.dumps({'title': 'Mine', 'presenter_name': 'Dr. D', 'content': 'Text'}))

        response = client.get(f'{BASE}/mine', headers=delegate_headers)

        data = json.loads(response.data)
        assert data['total'] == 1
        assert data['abstracts'][0]['title'] == 'Mine'


class TestAdminListing:

    def test_filters_and_statistics(self, client, admin_headers, create_abstract):
        create_abstract(title='One', status=AbstractStatus.APPROVED, category=AbstractCategory.POSTER)
        create_abstract(title='Two')
        create_abstract(title='Three')

        response = client.get(f'{BASE}?status=approved', headers=admin_headers)

        data = json.loads(response.data)
        assert data['total'] == 1
        assert data['abstracts'][0]['title'] == 'One'
        assert data['statistics']['total'] == 3
        assert data['statistics']['pending'] == 2
        assert data['statistics']['byCategory']['Poster']['approved'] == 1

    def test_unknown_filter(self, client, admin_headers):
        response = client.get(f'{BASE}?status=archived', headers=admin_headers)
        assert response.status_code == 400

    def test_statistics_endpoint(self, client, admin_headers, create_abstract):
        create_abstract(status=AbstractStatus.REJECTED)

        response = client.get(f'{BASE}/statistics', headers=admin_headers)

        assert json.loads(response.data)['statistics']['rejected'] == 1

    def test_delegate_cannot_list_everything(self, client, delegate_headers):
        assert client.get(BASE, headers=delegate_headers).status_code == 403


class TestReadAndDelete:

    def test_owner_and_admin_can_read(self, client, create_abstract, owner_headers, admin_headers):
        abstract = create_abstract(title='Readable')

        assert client.get(f'{BASE}/{abstract.id}', headers=owner_headers()).status_code == 200
        assert client.get(f'{BASE}/{abstract.id}', headers=admin_headers).status_code == 200

    def test_other_delegate_gets_404(self, client, create_abstract, delegate_headers):
        abstract = create_abstract()
        assert client.get(f'{BASE}/{abstract.id}', headers=delegate_headers).status_code == 404

    def test_owner_deletes_pending(self, client, create_abstract, owner_headers):
        abstract = create_abstract()
        abstract_id = abstract.id

        response = client.delete(f'{BASE}/{abstract_id}', headers=owner_headers())

        assert response.status_code == 200
        assert db.session.get(Abstract, abstract_id) is None

    def test_delete_by_other_user_is_403(self, client, create_abstract, delegate_headers):
        abstract = create_abstract()
        assert client.delete(f'{BASE}/{abstract.id}', headers=delegate_headers).status_code == 403

    def test_delete_reviewed_is_409(self, client, create_abstract, owner_headers):
        abstract = create_abstract(status=AbstractStatus.APPROVED)
        assert client.delete(f'{BASE}/{abstract.id}', headers=owner_headers()).status_code == 409


class TestSingleStatusUpdate:

    def test_approve_and_notify(self, client, admin_headers, create_abstract, fake_transport):
        abstract = create_abstract()

        response = client.post(f'{BASE}/{abstract.id}/status', headers=admin_headers,
                               content_type='application/json',
                               data=json.dumps({'status': 'approved', 'comments': 'Oral slot'}))

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['abstract']['status'] == 'approved'
        assert data['abstract']['reviewer_comments'] == 'Oral slot'
        assert data['notification']['sent'] is True
        assert data['notification']['recipient'] == 'owner@example.com'
        assert len(fake_transport.sent) == 1

    def test_notify_can_be_skipped(self, client, admin_headers, create_abstract, fake_transport):
        abstract = create_abstract()

        response = client.post(f'{BASE}/{abstract.id}/status', headers=admin_headers,
                               content_type='application/json',
                               data=json.dumps({'status': 'rejected', 'notify': False}))

        assert json.loads(response.data)['notification'] is None
        assert fake_transport.sent == []

    def test_back_to_pending_mails_without_comments(self, client, admin_headers, create_abstract, fake_transport):
        abstract = create_abstract(status=AbstractStatus.APPROVED, reviewer_comments='Oral slot')

        response = client.post(f'{BASE}/{abstract.id}/status', headers=admin_headers,
                               content_type='application/json',
                               data=json.dumps({'status': 'pending', 'comments': 'Private reviewer note'}))

        assert response.status_code == 200
        assert json.loads(response.data)['abstract']['reviewer_comments'] is None
        assert 'Private reviewer note' not in fake_transport.sent[0]['text']

    def test_invalid_status(self, client, admin_headers, create_abstract):
        abstract = create_abstract()

        response = client.post(f'{BASE}/{abstract.id}/status', headers=admin_headers,
                               content_type='application/json', data=json.dumps({'status': 'archived'}))

        assert response.status_code == 400

    def test_unknown_abstract(self, client, admin_headers):
        response = client.post(f'{BASE}/999/status', headers=admin_headers,
                               content_type='application/json', data=json.dumps({'status': 'approved'}))
        assert response.status_code == 404

    def test_final_submitted_is_frozen(self, client, admin_headers, create_abstract, fake_transport):
        abstract = create_abstract(status=AbstractStatus.FINAL_SUBMITTED)

        response = client.post(f'{BASE}/{abstract.id}/status', headers=admin_headers,
                               content_type='application/json', data=json.dumps({'status': 'rejected'}))

        assert response.status_code == 409
        assert fake_transport.sent == []


class TestFinalUpload:

    def test_approved_abstract_accepts_final_file(self, client, create_abstract, owner_headers):
        abstract = create_abstract(status=AbstractStatus.APPROVED)

        response = client.post(f'{BASE}/{abstract.id}/final-upload', headers=owner_headers(),
                               content_type='application/json',
                               data=json.dumps({'final_file_name': 'talk.pptx', 'final_file_path': 'final/talk.pptx'}))

        assert response.status_code == 200
        data = json.loads(response.data)['abstract']
        assert data['status'] == 'final_submitted'
        assert data['final_file_name'] == 'talk.pptx'
        assert data['final_submitted_at'] is not None

    def test_pending_abstract_is_409(self, client, create_abstract, owner_headers):
        abstract = create_abstract()

        response = client.post(f'{BASE}/{abstract.id}/final-upload', headers=owner_headers(),
                               content_type='application/json', data=json.dumps({'final_file_name': 'talk.pptx'}))

        assert response.status_code == 409

    def test_file_name_required(self, client, create_abstract, owner_headers):
        abstract = create_abstract(status=AbstractStatus.APPROVED)

        response = client.post(f'{BASE}/{abstract.id}/final-upload', headers=owner_headers(),
                               content_type='application/json', data=json.dumps({}))

        assert response.status_code == 400
