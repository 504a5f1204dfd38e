import pytest

from crudcell.db.session_manager import SessionManager
from crudcell.utilities.errors import InvalidArgumentsError

from ..fakes import FakeClient, FakeCollection


class TestGenerateSession:
    def test_external_session_is_used_as_is(self, client: FakeClient, session_manager: SessionManager):
        external = client.start_session()
        assert session_manager.generate_session(external, True, is_forced=True) == (external, None)

    @pytest.mark.parametrize("is_enabled_by_hook, is_forced, is_started", [
        (None, False, False),
        (False, False, False),
        (True, False, True),
        (None, True, True),
        (True, True, True),
        (False, True, False),
    ])
    def test_internal_session_decision(self, client: FakeClient, session_manager: SessionManager, is_enabled_by_hook, is_forced, is_started):
        session, internal_session = session_manager.generate_session(None, is_enabled_by_hook, is_forced)

        assert (internal_session is not None) == is_started
        assert session is internal_session
        assert len(client.sessions) == (1 if is_started else 0)

    def test_controller_sessions_follow_the_hook(self, client: FakeClient, session_manager: SessionManager):
        assert session_manager.generate_session_for_controller(None) is None
        assert session_manager.generate_session_for_controller(True) is client.sessions[0]


class TestExec:
    def test_internal_session_runs_in_a_transaction_and_ends(self, client: FakeClient, session_manager: SessionManager):
        internal = client.start_session()

        assert session_manager.exec(lambda: 42, None, internal) == 42
        assert internal.transaction_count == 1
        assert internal.end_count == 1
        assert internal.transaction_kwargs["read_concern"].level == "majority"
        assert internal.transaction_kwargs["write_concern"].document == {"w": "majority"}

    def test_internal_session_rolls_back_and_ends_on_error(self, client: FakeClient, session_manager: SessionManager, collection: FakeCollection):
        internal = client.start_session()

        def write_then_fail():
            collection.insert_one({"author": "Herbert"})
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            session_manager.exec(write_then_fail, None, internal)
        assert collection.documents == []
        assert internal.aborted_count == 1
        assert internal.end_count == 1

    def test_external_session_is_never_ended(self, client: FakeClient, session_manager: SessionManager):
        external = client.start_session()

        assert session_manager.exec(lambda: "done", external, None) == "done"
        with pytest.raises(ValueError):
            session_manager.exec(lambda: int("x"), external, None)
        assert external.transaction_count == 0
        assert external.end_count == 0

    def test_no_session(self, session_manager: SessionManager):
        assert session_manager.exec(lambda: [1], None, None) == [1]

    def test_func_must_be_callable(self, session_manager: SessionManager):
        with pytest.raises(InvalidArgumentsError):
            session_manager.exec("not callable", None, None)
