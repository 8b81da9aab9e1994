import os
import tempfile

# Must be set before `main` is imported: the app configures itself at import time.
_tmp = tempfile.mkdtemp(prefix="studygenius-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp}/test.db"
os.environ["ADMIN_PASSWORD"] = "adminpass"
os.environ["DEFAULT_GROUP_PASSWORD"] = "general"
os.environ.pop("PASSWORD_HASH_SCHEME", None)
os.environ.pop("REQUIRE_EMAIL_CONFIRMATION", None)

import pytest

from main import app as flask_app, db, seed_defaults
from models import User, Group, Exam, ROLE_USER, ROLE_TEACHER

ADMIN = ("admin", "adminpass")


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True, REQUIRE_EMAIL_CONFIRMATION=False, MIN_PASSWORD_LENGTH=6)
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        seed_defaults()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(app, username, role=ROLE_USER, password="secret1", **fields):
    with app.app_context():
        u = User(username=username, email=f"{username.lower()}@studygenius.app", role=role, **fields)
        u.set_password(password)
        db.session.add(u)
        db.session.commit()
        return u.id


def login(client, username, password="secret1"):
    return client.post("/login", data={"username": username, "password": password})


def logged_in(app, username, role=ROLE_USER, password="secret1"):
    make_user(app, username, role=role, password=password)
    c = app.test_client()
    resp = login(c, username, password)
    assert resp.status_code == 302
    return c


def create_group(client, name="Physics 101", password="grouppass", description="Waves and optics"):
    return client.post("/groups/new", data={"name": name, "password": password, "description": description})


def group_id(app, name):
    with app.app_context():
        return Group.query.filter_by(name=name).one().id


def general_exam_ids(app):
    with app.app_context():
        g = Group.query.filter_by(name="General").one()
        return [e.id for e in Exam.query.filter_by(group_id=g.id).order_by(Exam.id).all()]


@pytest.fixture
def admin_client(app):
    c = app.test_client()
    assert login(c, *ADMIN).status_code == 302
    return c


@pytest.fixture
def teacher_client(app):
    return logged_in(app, "teacher", role=ROLE_TEACHER)


@pytest.fixture
def student_client(app):
    return logged_in(app, "student")
