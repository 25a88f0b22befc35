"""
Tests for the repo-lens CLI and its display helpers.

Commands run against a real KnowledgeEngine backed by in-memory gateways;
``KnowledgeEngine.from_config`` is patched so nothing touches the network
or the working directory's cache.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

PAYMENT_JS = """\
/**
 * Processes subscription payments through the billing provider
 */
function processSubscriptionPayment(memberId) {
  return billing.charge(memberId);
}
"""


def _engine_factory(tree):
    from repo_lens.gateway import InMemoryGateway, StaticHistoryProvider
    from repo_lens.kb.engine import KnowledgeEngine

    def _from_config(config, repository=None, **kwargs):
        config.TARGET_FILES = 0
        return KnowledgeEngine(
            config,
            repository=repository,
            gateway_factory=lambda repo: InMemoryGateway(tree),
            history_provider=StaticHistoryProvider(),
        )
    return _from_config


def _run(argv, tmp_path, monkeypatch, tree=None):
    from repo_lens import cli

    monkeypatch.setenv("REPO_LENS_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("REPO_LENS_REPOSITORY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    tree = tree if tree is not None else {"src": {"payments.js": PAYMENT_JS}}
    with patch.object(cli.KnowledgeEngine, "from_config",
                      side_effect=_engine_factory(tree)):
        return cli.main(argv)


class TestCommands:
    def test_scan(self, tmp_path, monkeypatch, capsys):
        code = _run(["--repo", "acme/shop", "scan"], tmp_path, monkeypatch)
        out = capsys.readouterr().out
        assert code == 0
        assert "Scan complete" in out
        assert "acme/shop" in out
        assert "real data (crawl)" in out

    def test_search(self, tmp_path, monkeypatch, capsys):
        code = _run(["--repo", "acme/shop", "search", "subscription payments",
                     "--top-k", "2"], tmp_path, monkeypatch)
        out = capsys.readouterr().out
        assert code == 0
        assert "src/payments.js" in out
        assert "[2 result(s)]" in out

    def test_search_without_repository_uses_demo_data(self, tmp_path, monkeypatch, capsys):
        code = _run(["search", "newsletter email"], tmp_path, monkeypatch)
        out = capsys.readouterr().out
        assert code == 0
        assert "synthetic demo data" in out

    def test_ask(self, tmp_path, monkeypatch, capsys):
        code = _run(["--repo", "acme/shop", "ask", "How are subscription payments processed?"],
                    tmp_path, monkeypatch)
        out = capsys.readouterr().out
        assert code == 0
        assert "Confidence:" in out
        assert "- src/payments.js" in out

    def test_ask_without_answer(self, tmp_path, monkeypatch, capsys):
        code = _run(["--repo", "acme/shop", "ask", "kubernetes helm chart"],
                    tmp_path, monkeypatch)
        assert code == 1
        assert "No relevant information" in capsys.readouterr().out

    def test_status_and_clear(self, tmp_path, monkeypatch, capsys):
        assert _run(["--repo", "acme/shop", "status"], tmp_path, monkeypatch) == 0
        out = capsys.readouterr().out
        assert "Last scan  : never" in out
        assert "Next scan  : Scan needed" in out

        assert _run(["--repo", "acme/shop", "clear"], tmp_path, monkeypatch) == 0
        assert "Cleared cached scan for acme/shop" in capsys.readouterr().out

    def test_bad_repository_is_config_error(self, tmp_path, monkeypatch, capsys):
        from repo_lens import cli

        monkeypatch.setenv("REPO_LENS_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.chdir(tmp_path)
        assert cli.main(["--repo", "not-a-repo", "status"]) == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_command_required(self):
        from repo_lens import cli

        with pytest.raises(SystemExit):
            cli.main([])


class TestFormatting:
    def test_format_duration(self):
        from repo_lens.cli_display import format_duration_ms

        hour = 60 * 60 * 1000
        assert format_duration_ms(0) == "Scan needed"
        assert format_duration_ms(-5) == "Scan needed"
        assert format_duration_ms(hour) == "1 hour"
        assert format_duration_ms(26 * hour) == "1 day, 2 hours"
        assert format_duration_ms(72 * hour) == "3 days, 0 hours"

    def test_format_epoch(self):
        from repo_lens.cli_display import format_epoch_ms

        assert format_epoch_ms(None) == "never"
        assert format_epoch_ms(0) == "never"
        assert format_epoch_ms(1_700_000_000_000) == "2023-11-14 22:13 UTC"

    def test_progress_bar_completes(self):
        from repo_lens.cli_display import ScanProgressBar

        bar = ScanProgressBar(desc="test")
        bar(10)
        bar(5)
        bar(60)
        bar.close()
        assert bar._last == 100
