from typer.testing import CliRunner

from adapters.cli.main import app
from adapters.cli.session import Session, current_session, load_session, save_session

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "local-agent v0.1.0" in result.output


def test_session_is_created_then_reused(tmp_path):
    path = tmp_path / "session.json"
    first = current_session(path=path)
    assert first.conversation_id.startswith("cli-")
    assert current_session(path=path) == first
    assert current_session(new=True, path=path) != first


def test_unreadable_session_is_ignored(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("not json", encoding="utf-8")
    assert load_session(path) is None
    save_session(Session("abc"), path)
    assert load_session(path) == Session("abc")
