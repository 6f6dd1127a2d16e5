"""Tests for the command-line interface."""

import json
from pathlib import Path

import pytest
from conftest import RIGOL_IDN, SIGLENT_IDN, UNKNOWN_IDN, FakeBus, make_instrument

import benchvisa.__main__ as cli
from benchvisa.codec import wrap_frame
from benchvisa.errors import BackendMissingError


@pytest.fixture
def bench(monkeypatch: pytest.MonkeyPatch) -> FakeBus:
    """Replace the VISA bus the CLI creates with a fake one."""
    bus = FakeBus()
    monkeypatch.setattr(cli, "VisaBus", lambda backend: bus)
    return bus


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    return excinfo.value.code


def test_list_prints_devices(bench: FakeBus, capsys: pytest.CaptureFixture[str]) -> None:
    """Verify list shows each supported instrument and its resource."""
    bench.resources = {
        "USB0::SCOPE::INSTR": make_instrument(RIGOL_IDN, "USB0::SCOPE::INSTR"),
        "USB0::GEN::INSTR": make_instrument(SIGLENT_IDN, "USB0::GEN::INSTR"),
    }

    assert _run(["list"]) == 0

    out = capsys.readouterr().out
    assert "DS1104Z" in out
    assert "SDG2042X" in out
    assert "USB0::SCOPE::INSTR" in out
    assert "not supported" not in out
    assert bench.closed is True


def test_list_reports_unknown(bench: FakeBus, capsys: pytest.CaptureFixture[str]) -> None:
    """Verify list mentions unsupported instruments."""
    bench.resources = {"DMM": make_instrument(UNKNOWN_IDN, "DMM")}

    assert _run(["list"]) == 0

    out = capsys.readouterr().out
    assert "No supported instruments found" in out
    assert "not supported" in out


def test_list_notes_unknown_beside_supported(
    bench: FakeBus, capsys: pytest.CaptureFixture[str]
) -> None:
    """Verify the notice still appears when an unknown instrument sits beside supported ones."""
    bench.resources = {
        "SCOPE": make_instrument(RIGOL_IDN, "SCOPE"),
        "GEN": make_instrument(SIGLENT_IDN, "GEN"),
        "DMM": make_instrument(UNKNOWN_IDN, "DMM"),
    }

    assert _run(["list"]) == 0

    out = capsys.readouterr().out
    assert "SDG2042X" in out
    assert "not supported" in out


def test_capture_saves_json_and_csv(
    bench: FakeBus, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """Verify capture downloads the screen and saves it."""
    scope = make_instrument(RIGOL_IDN, "SCOPE")
    scope.raw_reads = [wrap_frame(bytes([127, 152, 102]))]
    scope.query_responses.update(
        {
            ":WAVeform:YORigin?": "0",
            ":WAVeform:YINCrement?": "0.04",
            ":WAVeform:YREFerence?": "127",
            ":WAVeform:XINCrement?": "1e-06",
            ":WAVeform:XORigin?": "0",
        }
    )
    bench.resources = {"SCOPE": scope}

    assert _run(["capture", "--channel", "2", "--output", str(tmp_path), "--csv"]) == 0

    json_files = list(tmp_path.glob("*.json"))
    assert len(json_files) == 1
    data = json.loads(json_files[0].read_text())
    assert data["channel"] == 2
    assert data["samples"] == pytest.approx([0.0, 1.0, -1.0])
    assert data["instrument"]["model"] == "DS1104Z"
    assert len(list(tmp_path.glob("*.csv"))) == 1
    assert scope.closed is True


def test_capture_without_scope(bench: FakeBus, capsys: pytest.CaptureFixture[str]) -> None:
    """Verify capture fails cleanly when no oscilloscope is connected."""
    assert _run(["capture"]) == 1

    assert "No supported oscilloscope" in capsys.readouterr().out


def test_status_prints_parameters(bench: FakeBus, capsys: pytest.CaptureFixture[str]) -> None:
    """Verify status shows the decoded generator settings."""
    generator = make_instrument(SIGLENT_IDN, "GEN")
    generator.query_responses["C1:BSWV?"] = "C1:BSWV WVTP,SINE,FRQ,60HZ,AMP,4V,OFST,0V,PHSE,0"
    generator.query_responses["C1:SRATE?"] = "C1:SRATE MODE,DDS"
    bench.resources = {"GEN": generator}

    assert _run(["status"]) == 0

    out = capsys.readouterr().out
    assert "SINE" in out
    assert "frequency" in out
    assert "60.0" in out
    assert "sample_rate" not in out


def test_missing_backend_exits_with_message(
    bench: FakeBus, capsys: pytest.CaptureFixture[str]
) -> None:
    """Verify a missing VISA library is reported without a traceback."""
    bench.list_error = BackendMissingError("No VISA implementation found")

    assert _run(["list"]) == 1

    assert "No VISA implementation found" in capsys.readouterr().out


def test_backend_defaults_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify the backend option falls back to the environment variable."""
    monkeypatch.setenv(cli.BACKEND_ENV_VAR, "@py")

    args = cli.build_parser().parse_args(["list"])

    assert args.backend == "@py"
