"""Tests for the typer CLI."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from conftest import TEMPLATES_DIR, build_docx
from cv_docgen.cli import app

runner = CliRunner()


class TestGenerateCommand:
    def test_writes_docx(self, tmp_path, sample_cv_data):
        cv_file = tmp_path / "cv.json"
        cv_file.write_text(json.dumps(sample_cv_data), encoding="utf-8")
        out = tmp_path / "out"
        result = runner.invoke(app, [
            "generate", str(cv_file), "--template", "harvard-classic",
            "--output-dir", str(out), "--name", "layla",
        ])
        assert result.exit_code == 0, result.output
        assert (out / "layla.docx").stat().st_size > 0

    def test_accepts_full_request_body(self, tmp_path, sample_cv_data):
        cv_file = tmp_path / "request.json"
        cv_file.write_text(json.dumps({"cvData": sample_cv_data}), encoding="utf-8")
        result = runner.invoke(app, [
            "generate", str(cv_file), "-t", "minimalist-clean", "-o", str(tmp_path), "--name", "cv",
        ])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "cv.docx").exists()

    def test_unknown_template(self, tmp_path, sample_cv_data):
        cv_file = tmp_path / "cv.json"
        cv_file.write_text(json.dumps(sample_cv_data), encoding="utf-8")
        result = runner.invoke(app, ["generate", str(cv_file), "-t", "nope", "-o", str(tmp_path)])
        assert result.exit_code == 1
        assert "Template not found" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["generate", str(tmp_path / "missing.json"), "-t", "harvard-classic"])
        assert result.exit_code == 1

    def test_invalid_json(self, tmp_path):
        cv_file = tmp_path / "cv.json"
        cv_file.write_text("{broken", encoding="utf-8")
        result = runner.invoke(app, ["generate", str(cv_file), "-t", "harvard-classic"])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output


class TestInspectionCommands:
    def test_templates(self):
        result = runner.invoke(app, ["templates", "--category", "academic"])
        assert result.exit_code == 0
        assert "Harvard Classic" in result.output

    def test_templates_none_match(self):
        result = runner.invoke(app, ["templates", "--language", "xx"])
        assert result.exit_code == 0
        assert "No templates found" in result.output

    def test_templates_recommended_for_industry(self):
        result = runner.invoke(app, ["templates", "--industry", "design"], env={"COLUMNS": "200"})
        assert result.exit_code == 0
        assert "Modern Professional" in result.output
        assert "Creative Portfolio" not in result.output
        premium = runner.invoke(
            app, ["templates", "--industry", "design", "--premium-user"], env={"COLUMNS": "200"},
        )
        assert "Creative Portfolio" in premium.output

    def test_placeholders(self):
        result = runner.invoke(app, ["placeholders", str(TEMPLATES_DIR / "word" / "minimalist-clean.docx")])
        assert result.exit_code == 0
        assert "NAME" in result.output
        assert "WORK_SECTION" in result.output

    def test_placeholders_none(self, tmp_path):
        path = tmp_path / "plain.docx"
        path.write_bytes(build_docx(["nothing to fill"]))
        result = runner.invoke(app, ["placeholders", str(path)])
        assert result.exit_code == 0
        assert "No placeholders found" in result.output
