"""Export of oscilloscope captures to JSON, CSV and PNG."""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import matplotlib.pyplot as plt

from benchvisa.waveform_data import WaveformData

if TYPE_CHECKING:
    from matplotlib.axes import Axes

    from benchvisa.identity import InstrumentIdentity

CAPTURE_SCHEMA_VERSION = 1

# Darkened versions of the DS1000Z trace colours, readable on white
PLOT_COLORS = {1: "#D4AA00", 2: "#00CCCC", 3: "#CC00CC", 4: "#4169E1"}

Captures = WaveformData | Mapping[int, WaveformData]


def _by_channel(captures: Captures) -> dict[int, WaveformData]:
    if isinstance(captures, WaveformData):
        return {captures.channel: captures}
    return dict(sorted(captures.items()))


def waveform_to_dict(
    data: WaveformData, identity: InstrumentIdentity | None = None
) -> dict[str, object]:
    """JSON-ready document for one capture; samples rounded to microvolts."""
    document: dict[str, object] = {
        "version": CAPTURE_SCHEMA_VERSION,
        "capture_time": datetime.now(UTC).isoformat(),
        "channel": data.channel,
        "sample_rate_hz": data.sample_rate,
        "start_time_s": data.start_time,
        "samples": [round(v, 6) for v in data.voltages],
    }
    if identity is not None:
        document["instrument"] = {
            "manufacturer": identity.manufacturer,
            "model": identity.model,
            "serial": identity.serial,
            "firmware": identity.firmware,
        }
    return document


def save_waveform_json(
    data: WaveformData, filename: str | Path, identity: InstrumentIdentity | None = None
) -> None:
    Path(filename).write_text(json.dumps(waveform_to_dict(data, identity)))


def load_waveform_json(filename: str | Path) -> WaveformData:
    """Read a capture written by :func:`save_waveform_json`.

    Raises:
        ValueError: If the file has a different schema version.
    """
    document = json.loads(Path(filename).read_text())
    version = document.get("version")
    if version != CAPTURE_SCHEMA_VERSION:
        raise ValueError(f"Unsupported waveform file version: {version}")
    return WaveformData(
        voltages=document["samples"],
        sample_rate=document["sample_rate_hz"],
        start_time=document["start_time_s"],
        channel=document.get("channel", 1),
    )


def save_waveform_csv(captures: Captures, filename: str | Path) -> None:
    """Write captures as CSV, one row per sample time.

    A single capture gets the columns ``time_s,voltage_v``. Several channels
    get one ``chN_v`` column each and must share their time base (as
    channels of one acquisition do); shorter channels leave cells empty.
    """
    channels = _by_channel(captures)
    if isinstance(captures, WaveformData):
        header = ["time_s", "voltage_v"]
    else:
        header = ["time_s"] + [f"ch{channel}_v" for channel in channels]
    reference = max(channels.values(), key=len)

    rows = [",".join(header)]
    for i, t in enumerate(reference.get_times()):
        cells = [f"{t:.9g}"]
        for waveform in channels.values():
            cells.append(f"{waveform.voltages[i]:.6g}" if i < len(waveform) else "")
        rows.append(",".join(cells))
    Path(filename).write_text("\n".join(rows) + "\n")


def _plot_channel(ax: Axes, waveform: WaveformData) -> None:
    times_ms = [t * 1000 for t in waveform.get_times()]
    ax.plot(
        times_ms,
        waveform.voltages,
        linewidth=0.5,
        label=f"CH{waveform.channel}",
        color=PLOT_COLORS.get(waveform.channel),
    )


def save_waveform_plot(
    captures: Captures, filename: str | Path, title: str = "Oscilloscope Capture"
) -> None:
    """Plot one or more channels against time in milliseconds and save the image."""
    fig, ax = plt.subplots(figsize=(12, 4))
    for waveform in _by_channel(captures).values():
        _plot_channel(ax, waveform)

    ax.set(xlabel="Time (ms)", ylabel="Voltage (V)", title=title)
    ax.grid(True, alpha=0.3)
    ax.axvline(x=0, color="r", linewidth=0.5, linestyle="--", label="Trigger")
    ax.legend(loc="upper right")

    fig.tight_layout()
    fig.savefig(filename, dpi=150)
    plt.close(fig)
