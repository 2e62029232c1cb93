"""
Tests for the explicit operator session context.
"""

import pytest

from campusgrid.exceptions import AuthError
from campusgrid.models.operator import Operator
from campusgrid.session import OperatorSession


def test_init_and_teardown_bump_generation():
    session = OperatorSession()
    assert not session.is_active
    session.init("t1", Operator(email="ops@campusgrid.in"))
    first = session.generation
    assert session.is_current(first)
    assert session.auth_headers() == {"Authorization": "Bearer t1"}

    session.teardown()
    assert not session.is_active
    assert not session.is_current(first)
    assert session.operator is None


def test_reinit_closes_previous_session():
    session = OperatorSession()
    closed = []
    session.on_teardown(lambda: closed.append(True))
    session.init("t1")
    session.init("t2")
    assert closed == [True]
    assert session.auth_headers()["Authorization"] == "Bearer t2"


def test_headers_require_login():
    with pytest.raises(AuthError, match="Not logged in"):
        OperatorSession().auth_headers()


def test_empty_token_is_rejected():
    with pytest.raises(ValueError):
        OperatorSession().init("")


def test_hooks_of_live_subscribers_still_run():
    class Replica:
        def __init__(self):
            self.discarded = False

        def discard(self):
            self.discarded = True

    session = OperatorSession()
    session.init("t1")
    replica = Replica()
    session.on_teardown(replica.discard)
    session.teardown()
    assert replica.discarded


def test_off_teardown_removes_hook():
    session = OperatorSession()
    closed = []
    hook = lambda: closed.append(True)  # noqa: E731
    session.on_teardown(hook)
    session.off_teardown(hook)
    session.init("t1")
    session.teardown()
    assert closed == []
    assert session.teardown_hook_count == 0
