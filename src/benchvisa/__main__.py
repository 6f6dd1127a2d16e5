"""CLI entry point for benchvisa."""

import argparse
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from benchvisa.device import DeviceKind
from benchvisa.discovery import discover
from benchvisa.errors import InstrumentError
from benchvisa.transport import VisaBus
from benchvisa.waveform import save_waveform_csv, save_waveform_json, save_waveform_plot

# Environment variable naming the default PyVISA backend (e.g. "@py")
BACKEND_ENV_VAR = "BENCHVISA_VISA_LIBRARY"
# Directory for saving captures
CAPTURES_DIR = Path("captures")


def _cmd_list(bus: VisaBus, args: argparse.Namespace) -> int:
    """Print every recognised oscilloscope and generator."""
    matched: set[str] = set()
    flagged = False
    for kind in DeviceKind:
        result = discover(kind, bus=bus)
        flagged = flagged or result.unknown_device_connected
        for device in result.devices:
            with device:
                identity = device.identify()
                print(f"{kind.value:<20} {identity.model_string:<36} "
                      f"{identity.serial:<16} {device.resource_id}")
            matched.add(device.resource_id)

    if not matched:
        print("No supported instruments found")
    # Each scan flags the other kinds' instruments too
    if flagged and set(bus.list_resources()) - matched:
        print("Note: at least one connected instrument is not supported "
              "(see the warnings above)")
    return 0


def _cmd_capture(bus: VisaBus, args: argparse.Namespace) -> int:
    """Capture one channel from the first oscilloscope found and save it."""
    result = discover(DeviceKind.OSCILLOSCOPE, bus=bus)
    if not result.devices:
        print("Error: No supported oscilloscope found")
        return 1
    scope, *others = result.devices
    for other in others:
        other.close()

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")

    with scope:
        print(f"Connected to {scope.model_string} at {scope.resource_id}")
        mode = "deep memory" if args.deep else "screen"
        print(f"Downloading channel {args.channel} ({mode})...")
        identity = scope.identify()
        waveform = scope.get_waveform(args.channel, deep=args.deep)

    base = output_dir / f"capture_{timestamp}_ch{args.channel}"
    save_waveform_json(waveform, f"{base}.json", identity)
    print(f"Saved {len(waveform)} samples ({waveform.peak_to_peak:.3g} Vpp) to {base}.json")

    if args.csv:
        save_waveform_csv(waveform, f"{base}.csv")
        print(f"Saved CSV to {base}.csv")
    if args.plot:
        save_waveform_plot(waveform, f"{base}.png", title=f"{identity.model} CH{args.channel}")
        print(f"Saved plot to {base}.png")
    return 0


def _cmd_status(bus: VisaBus, args: argparse.Namespace) -> int:
    """Print the basic-wave parameters of the first generator found."""
    result = discover(DeviceKind.FUNCTION_GENERATOR, bus=bus)
    if not result.devices:
        print("Error: No supported function generator found")
        return 1
    generator, *others = result.devices
    for other in others:
        other.close()

    with generator:
        params = generator.get_parameters(args.channel)
        sample_rate = generator.get_sample_rate(args.channel)

    print(f"{generator.model_string} channel {args.channel}")
    print(f"  {'wavetype':<12} {params.wavetype.value if params.wavetype else '-'}")
    for name, value in params.as_dict().items():
        if name == "wavetype":
            continue
        print(f"  {name:<12} {value}")
    if sample_rate >= 0:
        print(f"  {'sample_rate':<12} {sample_rate}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="benchvisa",
        description="Discover and operate VISA oscilloscopes and waveform generators",
    )
    parser.add_argument(
        "--backend",
        default=os.environ.get(BACKEND_ENV_VAR, ""),
        help="PyVISA backend, e.g. '@py' for pyvisa-py "
        f"(default: ${BACKEND_ENV_VAR} or the system VISA library)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log SCPI traffic and discovery details",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List supported instruments")
    list_parser.set_defaults(handler=_cmd_list)

    capture_parser = subparsers.add_parser(
        "capture", help="Capture a channel from the first oscilloscope"
    )
    capture_parser.add_argument(
        "--channel", type=int, default=1, help="Channel to capture (default: 1)"
    )
    capture_parser.add_argument(
        "--deep",
        action="store_true",
        help="Download the full acquisition memory instead of the screen",
    )
    capture_parser.add_argument(
        "--output",
        default=str(CAPTURES_DIR),
        help=f"Output directory (default: {CAPTURES_DIR})",
    )
    capture_parser.add_argument(
        "--csv", action="store_true", help="Also save a CSV of the capture"
    )
    capture_parser.add_argument(
        "--plot", action="store_true", help="Also save a plot of the capture"
    )
    capture_parser.set_defaults(handler=_cmd_capture)

    status_parser = subparsers.add_parser(
        "status", help="Show the waveform settings of the first generator"
    )
    status_parser.add_argument(
        "--channel", type=int, default=1, help="Generator channel (default: 1)"
    )
    status_parser.set_defaults(handler=_cmd_status)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for benchvisa CLI."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    bus = VisaBus(args.backend)
    try:
        status = args.handler(bus, args)
    except InstrumentError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        bus.close()
    sys.exit(status)


if __name__ == "__main__":
    main()
