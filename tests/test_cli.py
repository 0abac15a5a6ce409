"""Tests for argument parsing and the CLI entry point."""

import json

from brand_crawler import cli
from brand_crawler.generation import MLXTextGenerator
from brand_crawler.jobs import JobStatus


def test_build_config_from_args(monkeypatch):
    monkeypatch.delenv("VERCEL", raising=False)
    monkeypatch.delenv("AWS_LAMBDA_FUNCTION_NAME", raising=False)
    args = cli.parse_args(
        [
            "https://acme.test/",
            "--max-pages",
            "7",
            "--max-depth",
            "1",
            "--delay",
            "0",
            "--job-timeout",
            "12.5",
            "--renderer",
            "static",
            "--brand-name",
            "Acme",
        ]
    )

    config = cli.build_config(args)

    assert args.brand_name == "Acme"
    assert config.max_pages == 7
    assert config.max_depth == 1
    assert config.crawl_delay == 0
    assert config.job_timeout == 12.5
    assert config.renderer == "static"


def fake_run_job(final_status, seen):
    async def run(store, job_id, config=None, generator=None, **kwargs):
        seen["generator"] = generator
        seen["config"] = config
        record = store.get(job_id)
        record.transition(JobStatus.PROCESSING)
        if final_status == JobStatus.FAILED:
            record.error = "Could not launch Chromium"
        record.transition(final_status)
        return record

    return run


def test_main_prints_job_json(monkeypatch, capsys):
    seen = {}
    monkeypatch.setattr(cli, "run_job", fake_run_job(JobStatus.COMPLETED, seen))

    code = cli.main(["https://acme.test/", "--no-ai", "--industry", "furniture"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "completed"
    assert payload["seed_url"] == "https://acme.test/"
    assert payload["industry"] == "furniture"
    assert seen["generator"] is None


def test_main_writes_output_file_and_reports_failure(monkeypatch, tmp_path):
    seen = {}
    monkeypatch.setattr(cli, "run_job", fake_run_job(JobStatus.FAILED, seen))
    output = tmp_path / "kit.json"

    code = cli.main(["https://acme.test/", "--output", str(output)])

    assert code == 1
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["status"] == "failed"
    assert payload["error"] == "Could not launch Chromium"
    assert isinstance(seen["generator"], MLXTextGenerator)
