import logging
import os
from pathlib import Path

from gateway_app.main import GatewayDebugFilter, build_parser, load_env_files


def _forget_on_teardown(monkeypatch, *names):
    # Registered with monkeypatch so teardown removes what load_dotenv writes
    for name in names:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.host == "0.0.0.0"
    assert args.port == 8000
    assert args.log_dir is None
    assert args.check_health is False
    assert args.model is None


def test_parser_health_check_models():
    args = build_parser().parse_args(
        ["--check-health", "--model", "groq/a", "--model", "hackclub/b", "--log-dir", "/tmp/x"]
    )
    assert args.check_health is True
    assert args.model == ["groq/a", "hackclub/b"]
    assert args.log_dir == Path("/tmp/x")


def test_load_env_files_prefers_dot_env(tmp_path, monkeypatch):
    _forget_on_teardown(monkeypatch, "GW_TEST_SHARED", "GW_TEST_EXTRA")
    (tmp_path / ".env").write_text("GW_TEST_SHARED=from-dot-env\n")
    (tmp_path / "keys.env").write_text("GW_TEST_SHARED=from-keys\nGW_TEST_EXTRA=extra\n")

    loaded = load_env_files(tmp_path)

    assert [p.name for p in loaded] == [".env", "keys.env"]
    assert os.environ["GW_TEST_SHARED"] == "from-dot-env"
    assert os.environ["GW_TEST_EXTRA"] == "extra"


def test_debug_filter_keeps_only_library_debug_records():
    debug_filter = GatewayDebugFilter()

    def record(name, level):
        return logging.LogRecord(name, level, __file__, 1, "msg", None, None)

    assert debug_filter.filter(record("llm_gateway", logging.DEBUG))
    assert not debug_filter.filter(record("llm_gateway", logging.INFO))
    assert not debug_filter.filter(record("httpx", logging.DEBUG))
