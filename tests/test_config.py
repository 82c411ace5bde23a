"""Tests for Settings configuration model."""

from src.config import Settings


class TestDefaults:
    def test_default_host_url(self):
        s = Settings()
        assert s.host_url == "http://127.0.0.1:8765"

    def test_default_push_port(self):
        s = Settings()
        assert s.push_port == 8766

    def test_default_intervals(self):
        s = Settings()
        assert s.countdown_tick_seconds == 1.0
        assert s.connection_poll_seconds == 10.0
        assert s.reconcile_poll_seconds == 30.0

    def test_default_highlight_decay(self):
        s = Settings()
        assert s.highlight_decay_ms == 2000

    def test_default_toast_windows(self):
        s = Settings()
        assert s.toast_seconds == 5.0
        assert s.toast_restriction_seconds == 6.0
        assert s.toast_reason_seconds == 8.0
        assert s.toast_sticky_seconds == 0.0
        assert s.toast_reason_delay_seconds == 1.0

    def test_default_log_level(self):
        s = Settings()
        assert s.log_level == "INFO"


class TestOverrides:
    def test_init_values_win(self):
        s = Settings(instance_id="abc", display_timezone="America/Sao_Paulo")
        assert s.instance_id == "abc"
        assert s.display_timezone == "America/Sao_Paulo"

    def test_env_ignored_under_pytest(self, monkeypatch):
        monkeypatch.setenv("INSTANCE_ID", "from-env")
        s = Settings()
        assert s.instance_id == ""
