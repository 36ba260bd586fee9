"""Tests for configuration loading and validation."""

from textwrap import dedent

import pytest
import yaml
from pydantic import ValidationError

from schemadiff.cli.context import AnalysisContext
from schemadiff.config import (
    AnalysisConfig,
    LoggingConfig,
    RenderConfig,
    RulesConfig,
    ScoringConfig,
    load_config_from_yaml,
    save_config_to_yaml,
)
from schemadiff.exceptions import ConfigurationError


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_scoring(self, config):
        assert config.scoring.breaking_penalty == 15.0
        assert config.scoring.breaking_decay == 0.5
        assert config.scoring.warning_penalty == 3.0
        assert config.scoring.default_threshold == 70
        assert config.scoring.thresholds == {}

    def test_other_sections(self, config):
        assert config.rules.severity_overrides == {}
        assert config.diff.max_depth == 64
        assert config.render.sql_dialect is None
        assert config.logging.level == "WARNING"
        assert config.logging.format == "console"
        assert config.logging.file is None


class TestEnvironment:
    def test_nested_variable(self, monkeypatch):
        monkeypatch.setenv("SCHEMADIFF_SCORING__WARNING_PENALTY", "5")
        monkeypatch.setenv("SCHEMADIFF_DIFF__MAX_DEPTH", "12")

        config = AnalysisConfig()

        assert config.scoring.warning_penalty == 5.0
        assert config.diff.max_depth == 12

    def test_invalid_variable(self, monkeypatch):
        monkeypatch.setenv("SCHEMADIFF_LOGGING__LEVEL", "chatty")
        with pytest.raises(ValidationError):
            AnalysisConfig()

    def test_context_reports_invalid_environment(self, monkeypatch):
        monkeypatch.setenv("SCHEMADIFF_SCORING__DEFAULT_THRESHOLD", "150")
        with pytest.raises(ConfigurationError, match="SCHEMADIFF_"):
            AnalysisContext().config


class TestYamlLoading:
    def test_load(self, tmp_path):
        path = _write(
            tmp_path / "schemadiff.yaml",
            dedent(
                """
                scoring:
                  default_threshold: 90
                  thresholds:
                    protobuf: 80
                rules:
                  severity_overrides:
                    sql_ddl:
                      removed_nullable: breaking
                render:
                  sql_dialect: postgres
                """
            ),
        )

        config = load_config_from_yaml(path)

        assert config.scoring.default_threshold == 90
        assert config.scoring.threshold_for("protobuf") == 80
        assert config.rules.severity_overrides == {"sql_ddl": {"removed_nullable": "breaking"}}
        assert config.render.sql_dialect == "postgres"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config_from_yaml(tmp_path / "absent.yaml")

    def test_empty_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Empty"):
            load_config_from_yaml(_write(tmp_path / "empty.yaml", ""))

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config_from_yaml(_write(tmp_path / "list.yaml", "- scoring\n"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config_from_yaml(_write(tmp_path / "broken.yaml", "scoring: [\n"))

    def test_invalid_values(self, tmp_path):
        path = _write(tmp_path / "bad.yaml", "logging:\n  format: xml\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config_from_yaml(path)

    def test_environment_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CI_THRESHOLD", "85")
        path = _write(tmp_path / "env.yaml", "scoring:\n  default_threshold: ${CI_THRESHOLD}\n")

        assert load_config_from_yaml(path).scoring.default_threshold == 85

    def test_missing_environment_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CI_THRESHOLD", raising=False)
        path = _write(tmp_path / "env.yaml", "scoring:\n  default_threshold: ${CI_THRESHOLD}\n")

        with pytest.raises(ConfigurationError, match="CI_THRESHOLD"):
            load_config_from_yaml(path)

    def test_save_and_reload(self, tmp_path):
        config = AnalysisConfig(
            scoring=ScoringConfig(thresholds={"protobuf": 80}),
            render=RenderConfig(sql_dialect="mysql"),
        )
        path = tmp_path / "nested" / "saved.yaml"

        save_config_to_yaml(config, path)

        assert yaml.safe_load(path.read_text())["scoring"]["thresholds"] == {"protobuf": 80}
        assert load_config_from_yaml(path) == config


class TestValidators:
    def test_threshold_lookup(self):
        scoring = ScoringConfig(thresholds={"protobuf": 80})

        assert scoring.threshold_for("protobuf") == 80
        assert scoring.threshold_for("sql_ddl", fallback=60) == 60
        assert scoring.threshold_for("sql_ddl") == 70

    def test_threshold_out_of_range(self):
        with pytest.raises(ValidationError, match="between 0 and 100"):
            ScoringConfig(thresholds={"openapi": 120})

    def test_severity_names_are_normalized(self):
        rules = RulesConfig(severity_overrides={"sql_ddl": {"Removed_Nullable": "BREAKING"}})
        assert rules.severity_overrides == {"sql_ddl": {"removed_nullable": "breaking"}}

    def test_unknown_severity(self):
        with pytest.raises(ValidationError, match="Severity must be one of"):
            RulesConfig(severity_overrides={"json_schema": {"removed": "fatal"}})

    def test_log_level_and_format(self):
        logging_config = LoggingConfig(level="debug", format="JSON")

        assert logging_config.level == "DEBUG"
        assert logging_config.format == "json"

    @pytest.mark.parametrize("field,value", [("level", "LOUD"), ("format", "xml")])
    def test_invalid_logging(self, field, value):
        with pytest.raises(ValidationError):
            LoggingConfig(**{field: value})

    def test_dialect_is_lowercased(self):
        assert RenderConfig(sql_dialect="Postgres").sql_dialect == "postgres"
