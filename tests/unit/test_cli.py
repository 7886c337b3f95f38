import json
from pathlib import Path

import pytest

from stopgap.cli.main import main


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("STOPGAP_HOME", "STOPGAP_SITEMAP_PATH", "STOPGAP_BASE_URL", "STOPGAP_PLACEHOLDER_BASE"):
        monkeypatch.delenv(name, raising=False)


def test_commands_require_initialized_project(tmp_path: Path) -> None:
    assert main(["--project-root", str(tmp_path), "pages", "list"]) == 1
    assert not (tmp_path / ".stopgap" / "stopgap.db").exists()


def test_cli_manages_pages_sitemap_and_exports(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = ["--project-root", str(tmp_path)]

    assert main([*root, "init"]) == 0
    assert (tmp_path / ".stopgap" / "stopgap.db").exists()

    assert main([*root, "pages", "create", "/ressources/guide.pdf", "--source", "/ressources", "--priority", "high"]) == 0
    assert main([*root, "pages", "create", "/outils/simulateur", "--type", "tool"]) == 0
    assert main([*root, "pages", "update", "/outils/simulateur", "--progress", "30"]) == 0
    assert main([*root, "pages", "update", "/missing.pdf", "--progress", "30"]) == 1
    assert main([*root, "pages", "list"]) == 0
    assert main([*root, "pages", "stats"]) == 0
    assert "Total temporary pages: 2" in capsys.readouterr().out

    assert main([*root, "sitemap", "sync"]) == 0
    sitemap = tmp_path / "public" / "sitemap.xml"
    assert sitemap.read_text(encoding="utf-8").count("<url>") == 2
    assert main([*root, "sitemap", "validate"]) == 0

    assert main([*root, "export"]) == 0
    exported = json.loads((tmp_path / ".stopgap" / "exports" / "temporary-pages.json").read_text(encoding="utf-8"))
    assert {doc["resourceUrl"] for doc in exported.values()} == {"/ressources/guide.pdf", "/outils/simulateur"}

    assert main([*root, "pages", "remove", "/ressources/guide.pdf"]) == 0
    assert main([*root, "sitemap", "remove"]) == 0
    assert "<url>" not in sitemap.read_text(encoding="utf-8")

    assert main([*root, "import", str(tmp_path / ".stopgap" / "exports" / "temporary-pages.json")]) == 0
    assert main([*root, "sitemap", "sync"]) == 0
    assert main([*root, "doctor"]) == 0


def test_invalid_values_exit_with_error(tmp_path: Path) -> None:
    root = ["--project-root", str(tmp_path)]
    assert main([*root, "init"]) == 0

    assert main([*root, "pages", "create", "/a.pdf", "--progress", "150"]) == 1


def test_init_summarizes_registry(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = ["--project-root", str(tmp_path)]

    assert main([*root, "init"]) == 0
    out = capsys.readouterr().out
    assert "Temporary pages: 0 (0 reactive)" in out
    assert "stopgap detect" in out

    assert main([*root, "pages", "create", "/ressources/guide.pdf"]) == 0
    assert main([*root, "init"]) == 0
    assert "Temporary pages: 1 (0 reactive)" in capsys.readouterr().out


def test_strict_doctor_fails_on_sitemap_warnings(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = ["--project-root", str(tmp_path)]
    assert main([*root, "init"]) == 0
    assert main([*root, "pages", "create", "/ressources/guide.pdf"]) == 0
    assert main([*root, "sitemap", "sync"]) == 0
    capsys.readouterr()

    assert main([*root, "doctor"]) == 0
    assert "Status: PASS" in capsys.readouterr().out
    assert main([*root, "doctor", "--strict"]) == 1
    out = capsys.readouterr().out
    assert "Status: FAIL" in out
    assert "temporary page URL(s) listed in sitemap" in out
