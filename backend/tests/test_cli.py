import json

import pytest

from cargo_extractor import cli
from cargo_extractor.core.config import settings
from cargo_extractor.errors import ExtractionProviderError
from cargo_extractor.services.pipeline import ExtractionOutcome


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch, tmp_path):
    # main() reconfigures the root logger and reads .env; keep both out of the test run
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli.dotenv, "load_dotenv", lambda *args, **kwargs: False)
    monkeypatch.setattr(settings, "TEMP_IMAGES_DIR", str(tmp_path / "temp_images"))


def test_missing_file_exits_with_error(tmp_path, capsys):
    output = tmp_path / "out.json"

    code = cli.main([str(tmp_path / "nowhere.pdf"), "--output", str(output)])

    captured = capsys.readouterr()
    assert code == 1
    assert "Extraction failed" in captured.err
    assert "nowhere.pdf" in captured.err
    assert not output.exists()


def test_provider_failure_exits_with_error(tmp_path, monkeypatch, capsys):
    def failing_run(*args, **kwargs):
        raise ExtractionProviderError("Anthropic rate limit exceeded", error_type="rate_limit")

    monkeypatch.setattr(cli, "run_extraction", failing_run)

    code = cli.main([str(tmp_path / "bill.pdf"), "--output", str(tmp_path / "out.json")])

    assert code == 1
    assert "rate limit" in capsys.readouterr().err


def test_successful_run_writes_output_and_summary(tmp_path, monkeypatch, capsys):
    data = {
        "mbl_number": "MAEU123456789",
        "routing": {"port_of_loading": "Shanghai", "port_of_discharge": "Los Angeles"},
        "containers": [{"container_number": "MSKU1234567"}, {"container_number": "MSKU7654321"}],
        "missing_fields": ["notify_party"],
        "extraction_confidence": {"overall": 0.85},
    }
    calls = []

    def fake_run(file_paths, batch_size=None, document_type=None):
        calls.append((file_paths, batch_size, document_type))
        return ExtractionOutcome(
            data=data,
            files_processed=1,
            document_type="MBL",
            pages_processed=3,
            batches_processed=2,
            request_id="abc",
        )

    monkeypatch.setattr(cli, "run_extraction", fake_run)
    output = tmp_path / "out.json"

    code = cli.main(["bill.pdf", "--document-type", "mbl", "--batch-size", "2", "--output", str(output)])

    assert code == 0
    assert calls == [(["bill.pdf"], 2, "mbl")]
    assert json.loads(output.read_text()) == data
    printed = capsys.readouterr().out
    assert "MAEU123456789" in printed
    assert "Containers:         2" in printed
    assert "notify_party" in printed
    assert str(output) in printed


def test_defaults_come_from_settings(tmp_path, monkeypatch):
    calls = []

    def fake_run(file_paths, batch_size=None, document_type=None):
        calls.append((batch_size, document_type))
        return ExtractionOutcome(
            data={"line_items": [{"description": "a"}]},
            files_processed=1,
            document_type="COMMERCIAL_INVOICE",
            pages_processed=1,
            batches_processed=1,
            request_id="abc",
        )

    monkeypatch.setattr(cli, "run_extraction", fake_run)

    assert cli.main(["invoice.png", "--output", str(tmp_path / "out.json")]) == 0
    assert calls == [(settings.DEFAULT_BATCH_SIZE, settings.DEFAULT_DOCUMENT_TYPE)]
