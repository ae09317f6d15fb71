import json
import os

import pytest

from abstract_portal import create_app
from abstract_portal.extensions import db
from abstract_portal.models import Abstract, AbstractCategory, AbstractStatus, Role, User
from abstract_portal.utils.services.mail import SendResult


class FakeTransport:
    """Records every send; addresses in ``failing`` get a failed result, ``raising`` raise."""

    def __init__(self, failing=(), raising=()):
        self.failing = set(failing)
        self.raising = set(raising)
        self.sent = []

    def send(self, to, subject, html, text=None):
        if to in self.raising:
            raise RuntimeError(f"smtp exploded for {to}")
        if to in self.failing:
            return SendResult(False, error="Mailbox unavailable", status_code=550)
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return SendResult(True, message_id=f"msg-{len(self.sent)}", status_code=200)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(autouse=True)
def _reset_database(app):
    yield
    db.session.remove()
    db.drop_all()
    db.create_all()
    app.extensions.pop("mail_transport", None)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def create_user(app):
    """Create a delegate (or any role) and return it."""
    def _create_user(email='delegate@example.com', password='Delegate123', full_name='Dr. Delegate', role=Role.DELEGATE):
        user = User(email=email, full_name=full_name, institution='Test Institute')
        user.set_password(password)
        user.roles.append(role)
        db.session.add(user)
        db.session.commit()
        return user
    return _create_user


@pytest.fixture(scope='function')
def create_admin_user(create_user):
    def _create_admin_user(email='admin@example.com', password='Admin12345'):
        return create_user(email=email, password=password, full_name='Review Admin', role=Role.ADMIN)
    return _create_admin_user


@pytest.fixture(scope='function')
def create_abstract(create_user):
    """Create an abstract; a default owner is created on first use."""
    owners = {}

    def _create_abstract(title='Outcomes of haploidentical transplant', owner=None,
                         category=AbstractCategory.FREE_PAPER, status=AbstractStatus.PENDING, **extra):
        if owner is None:
            if 'default' not in owners:
                owners['default'] = create_user(email='owner@example.com', full_name='Dr. Owner')
            owner = owners['default']
        abstract = Abstract(
            title=title,
            presenter_name=owner.full_name,
            institution='Test Institute',
            content='Background. Methods. Results. Conclusion.',
            category=category,
            status=status,
            user_id=owner.id,
            **extra,
        )
        db.session.add(abstract)
        db.session.commit()
        return abstract
    return _create_abstract


@pytest.fixture(scope='function')
def login(client):
    def _login(email, password):
        response = client.post('/api/v1/auth/login',
                               data=json.dumps({'email': email, 'password': password}),
                               content_type='application/json')
        assert response.status_code == 200, response.get_data(as_text=True)
        token = json.loads(response.data)['access_token']
        return {'Authorization': f'Bearer {token}'}
    return _login


@pytest.fixture(scope='function')
def admin_headers(create_admin_user, login):
    create_admin_user()
    return login('admin@example.com', 'Admin12345')


@pytest.fixture(scope='function')
def fake_transport(app):
    transport = FakeTransport()
    app.extensions["mail_transport"] = transport
    return transport
