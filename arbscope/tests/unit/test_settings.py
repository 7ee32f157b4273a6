"""
ARBSCOPE - Tests for Environment Configuration
"""
import pytest

from arbscope.config.settings import (
    SlippageSettings, RiskSettings, CoordinatorSettings, ProfitSettings,
)
from arbscope.risk.engine import RiskScoringEngine


class TestEnvironmentOverrides:
    def test_prefixed_names_are_read(self, monkeypatch):
        monkeypatch.setenv("RISK_PROFILE", "conservative")
        monkeypatch.setenv("RISK_SUSPICIOUS_PROFIT_PCT", "5.0")
        monkeypatch.setenv("RISK_ADAPTIVE_WEIGHTS", "false")
        monkeypatch.setenv("SLIPPAGE_SIMULATED_WEIGHT", "0.5")
        monkeypatch.setenv("SLIPPAGE_HISTORY_CAPACITY", "20")
        monkeypatch.setenv("ASSESSMENT_MAX_WORKERS", "2")
        risk = RiskSettings()
        slippage = SlippageSettings()
        assert risk.active_profile == "conservative"
        assert risk.suspicious_profit_pct == 5.0
        assert risk.adaptive_weights is False
        assert slippage.simulated_weight == 0.5
        assert slippage.history_capacity == 20
        assert CoordinatorSettings().max_workers == 2

    def test_profile_from_environment(self, monkeypatch):
        monkeypatch.setenv("RISK_PROFILE", "conservative")
        engine = RiskScoringEngine(settings=RiskSettings())
        assert engine.profile.name == "Conservative"

    def test_unprefixed_names_unchanged(self, monkeypatch):
        monkeypatch.setenv("FETCH_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("MIN_VIABLE_PROFIT_PCT", "0.2")
        assert CoordinatorSettings().fetch_timeout_seconds == 1.5
        assert ProfitSettings().min_viable_profit_pct == 0.2

    def test_field_names_still_accepted(self):
        assert RiskSettings(active_profile="conservative").active_profile == "conservative"
        assert SlippageSettings(simulated_weight=0.6).simulated_weight == 0.6
        assert CoordinatorSettings(max_workers=8).max_workers == 8

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("RISK_PROFILE", raising=False)
        monkeypatch.delenv("SLIPPAGE_SIMULATED_WEIGHT", raising=False)
        assert RiskSettings().active_profile == "standard"
        assert SlippageSettings().simulated_weight == pytest.approx(0.7)
