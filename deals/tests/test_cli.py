"""Tests for the deals command-line interface."""

import json

import pytest

from deals import cli
from deals.store import SQLiteDealStore

CSV_TEXT = "\n".join([
    "title,brand,model_number,price,reviews,deal_url",
    "Roborock Q7 Max,Roborock,Q7-MAX,$299.99,4.5,https://www.amazon.com/dp/B0BXYZ1234",
    "Shark AI Ultra,Shark,AV2501AE,449,4.3,https://www.amazon.com/dp/B0CSHARK01",
])


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep CLI runs from writing log files."""
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "deals.db")


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "vacuums.csv"
    path.write_text(CSV_TEXT, encoding="utf-8")
    return str(path)


class TestLinkCommands:
    def test_clean_url(self, capsys):
        assert cli.main(["--clean-url", "https://www.amazon.com/x/dp/B0BXYZ1234?tag=other-20"]) == 0
        out = capsys.readouterr().out.strip()
        assert out.startswith("https://www.amazon.com/dp/B0BXYZ1234?tag=")
        assert "other-20" not in out

    def test_clean_url_invalid(self, capsys):
        assert cli.main(["--clean-url", "https://example.com/item"]) == 1
        assert "Not an Amazon URL" in capsys.readouterr().out

    def test_resolve_link(self, capsys):
        code = cli.main([
            "--resolve-link", "https://www.amazon.com/dp/B0BXYZ1234",
            "--user-agent", "Mozilla/5.0 (Linux; Android 14)",
        ])
        assert code == 0
        plan = json.loads(capsys.readouterr().out)
        assert plan["platform"] == "android"
        assert plan["app_link"].startswith("intent://www.amazon.com/dp/B0BXYZ1234")


class TestStoreCommands:
    def test_import_csv(self, db_path, csv_path, capsys):
        assert cli.main(["--db", db_path, "--import-csv", csv_path]) == 0
        out = capsys.readouterr().out
        assert "Successfully uploaded 2 robot vacuums" in out
        assert len(SQLiteDealStore(db_path).list_products()) == 2

    def test_import_invalid_csv_fails(self, db_path, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("title,brand\n", encoding="utf-8")
        assert cli.main(["--db", db_path, "--import-csv", str(path)]) == 1

    def test_stats(self, db_path, csv_path, capsys):
        cli.main(["--db", db_path, "--import-csv", csv_path])
        capsys.readouterr()

        assert cli.main(["--db", db_path, "--stats"]) == 0
        out = capsys.readouterr().out
        assert "Total products: 2" in out
        assert "ROBOROCK: 1" in out

    def test_export_csv(self, db_path, csv_path, tmp_path):
        cli.main(["--db", db_path, "--import-csv", csv_path])
        out_path = tmp_path / "export.csv"

        assert cli.main(["--db", db_path, "--export-csv", str(out_path)]) == 0
        assert out_path.read_text(encoding="utf-8").startswith("brand,model_number,title")

    def test_check_connection(self, db_path, capsys):
        assert cli.main(["--db", db_path, "--check-connection"]) == 0
        assert "Connection OK" in capsys.readouterr().out

    def test_import_html_preview_and_publish(self, db_path, tmp_path, capsys):
        path = tmp_path / "post.html"
        path.write_text("<html><head><title>Mop Guide</title></head><body><p>Hello.</p></body></html>")

        assert cli.main(["--db", db_path, "--import-html", str(path)]) == 0
        assert "Slug:    mop-guide" in capsys.readouterr().out
        assert SQLiteDealStore(db_path).list_posts() == []

        assert cli.main(["--db", db_path, "--import-html", str(path), "--publish"]) == 0
        assert "Published at /blog/mop-guide" in capsys.readouterr().out
