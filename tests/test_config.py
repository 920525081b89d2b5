"""
Tests for the layered configuration loader.
"""

import json
import logging

import pytest

from perch.config import (
    AccessLogConfig,
    ConfigLoader,
    WebConfig,
    configure_logging,
    load_config,
)
from perch.faults import ConfigInvalidFault


class TestDefaults:

    def test_empty_sources(self):
        config = load_config(environ={})
        assert config == WebConfig()
        assert config.context_url is None
        assert config.access_log.extra == ["query", "body"]
        assert config.rate_limit.limit == 60
        assert config.login.redirect_param == "redirect"

    def test_to_dict(self):
        data = WebConfig().to_dict()
        assert data["csrf"]["header_name"] == "X-CSRF-Token"
        assert data["access_log"]["skip_paths"] == []


class TestSources:

    def test_json_file(self, tmp_path):
        path = tmp_path / "perch.json"
        path.write_text(json.dumps({"context_url": "/app", "access_log": {"format": "json"}}))

        config = load_config(path=str(path), environ={})
        assert config.context_url == "/app"
        assert config.access_log.format == "json"
        assert config.access_log.enabled is True

    def test_missing_json_file(self, tmp_path):
        with pytest.raises(ConfigInvalidFault):
            load_config(path=str(tmp_path / "missing.json"), environ={})

    def test_invalid_json_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigInvalidFault) as exc_info:
            load_config(path=str(path), environ={})
        assert exc_info.value.code == "CONFIG_INVALID"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("PERCH_DEBUG=true\nPERCH_LOGIN__LOGIN_URL=/signin\nOTHER=ignored\n")

        config = load_config(env_file=str(env_file), environ={})
        assert config.debug is True
        assert config.login.login_url == "/signin"

    def test_missing_env_file_ignored(self, tmp_path):
        config = load_config(env_file=str(tmp_path / ".env"), environ={})
        assert config == WebConfig()

    def test_environment_nesting(self):
        config = load_config(environ={
            "PERCH_CSRF__SECRET_KEY": "s3cret",
            "PERCH_RATE_LIMIT__LIMIT": "10",
            "PERCH_RATE_LIMIT__WINDOW": "1.5",
            "PERCH_ACCESS_LOG__EXTRA": '["query", "jwt"]',
            "UNRELATED": "x",
        })
        assert config.csrf.secret_key == "s3cret"
        assert config.rate_limit.limit == 10
        assert config.rate_limit.window == 1.5
        assert config.access_log.extra == ["query", "jwt"]

    def test_comma_separated_list(self):
        config = load_config(environ={"PERCH_ACCESS_LOG__SKIP_PATHS": "/health, /metrics"})
        assert config.access_log.skip_paths == ["/health", "/metrics"]

    def test_integer_window_coerced_to_float(self):
        config = load_config(environ={"PERCH_RATE_LIMIT__WINDOW": "30"})
        assert config.rate_limit.window == 30.0
        assert isinstance(config.rate_limit.window, float)

    def test_precedence(self, tmp_path):
        path = tmp_path / "perch.json"
        path.write_text(json.dumps({"context_url": "/from-file", "debug": False}))
        env_file = tmp_path / ".env"
        env_file.write_text("PERCH_CONTEXT_URL=/from-dotenv\n")

        loader = ConfigLoader.load(
            path=str(path),
            env_file=str(env_file),
            environ={"PERCH_CONTEXT_URL": "/from-env"},
            overrides={"context_url": "/from-overrides"},
        )
        assert loader.get("context_url") == "/from-overrides"
        assert loader.get("debug") is False

        loader = ConfigLoader.load(path=str(path), env_file=str(env_file), environ={"PERCH_CONTEXT_URL": "/from-env"})
        assert loader.get("context_url") == "/from-env"

        loader = ConfigLoader.load(path=str(path), env_file=str(env_file), environ={})
        assert loader.get("context_url") == "/from-dotenv"

    def test_overrides_merge_nested(self):
        config = load_config(
            environ={"PERCH_CSRF__SECRET_KEY": "env"},
            overrides={"csrf": {"cookie_name": "xsrf"}},
        )
        assert config.csrf.secret_key == "env"
        assert config.csrf.cookie_name == "xsrf"

    def test_custom_prefix(self):
        loader = ConfigLoader.load(env_prefix="APP_", environ={"APP_DEBUG": "yes", "PERCH_DEBUG": "no"})
        assert loader.to_web_config().debug is True

    def test_get_with_default(self):
        loader = ConfigLoader.load(environ={})
        assert loader.get("csrf.secret_key", "fallback") == "fallback"


class TestValidation:

    def test_unknown_key(self):
        with pytest.raises(ConfigInvalidFault) as exc_info:
            load_config(environ={"PERCH_CSRF__SECRET": "x"})
        assert exc_info.value.metadata["key"] == "csrf.secret"

    def test_wrong_type(self):
        with pytest.raises(ConfigInvalidFault) as exc_info:
            load_config(environ={"PERCH_RATE_LIMIT__LIMIT": "many"})
        assert exc_info.value.metadata["key"] == "rate_limit.limit"

    def test_section_must_be_object(self):
        with pytest.raises(ConfigInvalidFault):
            load_config(overrides={"csrf": "on"}, environ={})

    def test_none_only_for_optional(self):
        config = load_config(environ={"PERCH_LOGIN__REDIRECT_PARAM": "none"})
        assert config.login.redirect_param is None
        with pytest.raises(ConfigInvalidFault):
            load_config(environ={"PERCH_LOGIN__LOGIN_URL": "null"})

    def test_numeric_string_field(self):
        config = load_config(environ={"PERCH_CSRF__SECRET_KEY": "12345"})
        assert config.csrf.secret_key == "12345"

    def test_bool_accepts_zero_and_one(self):
        config = load_config(environ={"PERCH_ACCESS_LOG__ENABLED": "0"})
        assert config.access_log.enabled is False


class TestConfigureLogging:

    def test_installs_single_handler(self):
        logger = logging.getLogger("perch")
        before = list(logger.handlers)
        try:
            configure_logging(logging.DEBUG)
            configure_logging(logging.WARNING)
            added = [h for h in logger.handlers if h not in before]
            assert len(added) <= 1
            assert logger.level == logging.WARNING
        finally:
            for handler in list(logger.handlers):
                if handler not in before:
                    logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)
