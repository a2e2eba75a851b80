import pytest

from necromancer.logging.logger import Log


class TestRunScope:
    def test_unbound_messages_have_no_prefix(self) -> None:
        assert Log._format("hello") == "hello"

    def test_scope_prefixes_and_resets(self) -> None:
        with Log.run_scope("abc"):
            assert Log._format("hello") == "[run abc] hello"
        assert Log._format("hello") == "hello"

    def test_nested_scope_restores_outer_run(self) -> None:
        with Log.run_scope("outer"):
            with Log.run_scope("inner"):
                assert Log._format("m") == "[run inner] m"
            assert Log._format("m") == "[run outer] m"

    def test_scope_resets_on_error(self) -> None:
        with pytest.raises(RuntimeError):
            with Log.run_scope("abc"):
                raise RuntimeError("boom")
        assert Log._format("m") == "m"
