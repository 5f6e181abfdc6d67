import pytest
from flask import Flask


@pytest.fixture(autouse=True)
def request_context():
    # mock.patch inspects the flask.request proxy before replacing it, which
    # needs an active request context.
    with Flask(__name__).test_request_context():
        yield
