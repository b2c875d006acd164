"""Tests for settings loading."""

from pathlib import Path

from ticketflow.core import config
from ticketflow.core.config import DatabaseConfig, Settings, WorkflowConfig


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TICKETFLOW_DB_PATH", raising=False)
        monkeypatch.delenv("WORKFLOW_CRITICAL_PATH_LIMIT", raising=False)
        settings = Settings(_env_file=None)
        assert settings.database.database_path == Path("data/ticketflow.db")
        assert settings.workflow.critical_path_limit == 5
        assert settings.workflow.barycenter_sweeps == 4
        assert settings.workflow.system_actor == "st"
        assert settings.log_level == "INFO"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TICKETFLOW_DB_PATH", str(tmp_path / "t.db"))
        monkeypatch.setenv("WORKFLOW_CRITICAL_PATH_LIMIT", "8")
        monkeypatch.setenv("WORKFLOW_SYSTEM_ACTOR", "bot")
        assert DatabaseConfig().database_path == tmp_path / "t.db"
        workflow = WorkflowConfig()
        assert workflow.critical_path_limit == 8
        assert workflow.system_actor == "bot"

    def test_database_path_by_name(self, tmp_path):
        assert DatabaseConfig(database_path=tmp_path / "x.db").database_path == tmp_path / "x.db"

    def test_reload_settings(self, monkeypatch):
        monkeypatch.setenv("WORKFLOW_BARYCENTER_SWEEPS", "2")
        monkeypatch.setattr(config, "settings", None)
        assert config.get_settings().workflow.barycenter_sweeps == 2
        monkeypatch.setenv("WORKFLOW_BARYCENTER_SWEEPS", "6")
        assert config.get_settings().workflow.barycenter_sweeps == 2
        assert config.reload_settings().workflow.barycenter_sweeps == 6
