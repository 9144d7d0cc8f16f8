import json
from unittest.mock import patch

import pytest
from conftest import http_response

import cli


@pytest.fixture
def session():
    with patch("invoice_vision.core.client.requests.Session") as session_cls:
        yield session_cls.return_value


@pytest.fixture(autouse=True)
def no_dotenv():
    with patch("cli.load_dotenv"):
        yield


def test_single_file_prints_json(tmp_path, session, gemini_ok, sample_invoice, png_bytes, capsys):
    session.post.return_value = gemini_ok
    image = tmp_path / "invoice.png"
    image.write_bytes(png_bytes)

    assert cli.main([str(image)]) == 0
    assert json.loads(capsys.readouterr().out) == sample_invoice


def test_batch_csv_to_file(tmp_path, session, gemini_ok, png_bytes):
    session.post.return_value = gemini_ok
    paths = []
    for name in ("a.png", "b.jpg"):
        path = tmp_path / name
        path.write_bytes(png_bytes)
        paths.append(str(path))
    output = tmp_path / "out.csv"

    assert cli.main(paths + ["--format", "csv", "--output", str(output)]) == 0

    lines = output.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 5
    assert lines[1].startswith("a.png,")
    assert lines[3].startswith("b.jpg,")


def test_partial_batch_failure_exit_code(tmp_path, session, gemini_ok, png_bytes, capsys):
    session.post.return_value = gemini_ok
    good = tmp_path / "a.png"
    good.write_bytes(png_bytes)
    bad = tmp_path / "notes.txt"
    bad.write_text("hello")

    assert cli.main([str(good), str(bad)]) == 1
    invoices = json.loads(capsys.readouterr().out)["invoices"]
    assert invoices[1]["fileName"] == "notes.txt"


def test_missing_key_exit_code(tmp_path, monkeypatch, session, png_bytes):
    monkeypatch.delenv("GEMINI_API_KEY")
    image = tmp_path / "invoice.png"
    image.write_bytes(png_bytes)

    assert cli.main([str(image)]) == 1
    session.post.assert_not_called()


def test_model_error_exit_code(tmp_path, session, png_bytes):
    session.post.return_value = http_response(400, text="bad request")
    image = tmp_path / "invoice.png"
    image.write_bytes(png_bytes)

    assert cli.main([str(image)]) == 1
    assert session.post.call_count == 1


def test_sessions_are_closed(tmp_path, session, gemini_ok, png_bytes):
    session.post.return_value = gemini_ok
    paths = []
    for name in ("a.png", "b.png"):
        path = tmp_path / name
        path.write_bytes(png_bytes)
        paths.append(str(path))

    assert cli.main(paths) == 0
    assert session.close.call_count == session.post.call_count == 2


def test_csv_omits_failed_files(tmp_path, session, gemini_ok, png_bytes):
    session.post.return_value = gemini_ok
    bad = tmp_path / "notes.txt"
    bad.write_text("hello")
    good = tmp_path / "b.png"
    good.write_bytes(png_bytes)
    output = tmp_path / "out.csv"

    assert cli.main([str(bad), str(good), "--format", "csv", "--output", str(output)]) == 1

    lines = output.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 3
    assert all(line.startswith("b.png,") for line in lines[1:])
