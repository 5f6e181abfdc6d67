import pytest

from .services import util
from .tests.util import new_app


@pytest.fixture()
def app():
    app = new_app()
    yield app
    with app.app_context():
        util.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()
