# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""
Event provenance command line.

Runs the API server or operates directly on the provenance database.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from .camera import ProvenanceCamera, build_camera
from .config import Settings, settings
from .crypto.signers import SoftwareSigner
from .exceptions import ProvenanceError
from .main import configure_logging, main as serve


def _parse_acceleration(value: str) -> dict:
    try:
        x, y, z = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError("expected X,Y,Z in g, e.g. 0.1,-0.4,1.0")
    return {"x": x, "y": y, "z": z}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="event-provenance",
        description="Tamper-evident event provenance chain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the HTTP API
  event-provenance serve

  # Record a manual capture
  event-provenance capture

  # Record a motion event with its acceleration sample
  event-provenance capture --motion 0.12,-0.51,0.98

  # Verify one event and the whole chain
  event-provenance verify-event 1b4e28ba-2fa1-11d2-883f-0016d3cca427
  event-provenance verify-chain
        """
    )
    parser.add_argument(
        '--database',
        help=f'SQLAlchemy database URL (default: {settings.database_url})'
    )
    parser.add_argument(
        '--key',
        type=Path,
        help=f'Software signing key path (default: {settings.signing_key_path})'
    )

    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('serve', help='Run the HTTP API')

    capture = sub.add_parser('capture', help='Capture a frame and record it')
    capture.add_argument(
        '--motion',
        type=_parse_acceleration,
        metavar='X,Y,Z',
        help='Record as motion_detection with this acceleration'
    )

    events = sub.add_parser('events', help='List recent events')
    events.add_argument('--limit', type=int, default=20)
    events.add_argument('--offset', type=int, default=0)

    verify = sub.add_parser('verify-event', help='Verify one event signature')
    verify.add_argument('event_id')

    sub.add_parser('verify-chain', help='Verify the whole hash chain')
    sub.add_parser('status', help='Show chain health')

    keygen = sub.add_parser('keygen', help='Create a persisted software signing key')
    keygen.add_argument('path', type=Path)

    return parser


def _config_from_args(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.database:
        overrides['database_url'] = args.database
    if args.key:
        overrides['signing_key_path'] = str(args.key)
    return settings.model_copy(update=overrides)


def _print_json(model) -> None:
    print(model.model_dump_json(indent=2))


def run_command(args: argparse.Namespace, camera: ProvenanceCamera) -> int:
    engine = camera.engine

    if args.command == 'capture':
        if args.motion:
            record = camera.handle_motion(args.motion)
        else:
            record = camera.manual_capture()
        mark = "✓" if record.signed else "⚠"
        print(f"{mark} Recorded {record.event_type} {record.event_id}")
        print(f"  Position: {record.chain_position}")
        print(f"  Hash: {record.current_hash}")
        print(f"  Trust: {record.signature_metadata.trust}")

    elif args.command == 'events':
        for record in engine.list_events(limit=args.limit, offset=args.offset):
            position = record.chain_position if record.chain_position is not None else "orphan"
            print(
                f"{str(position):>6}  {record.timestamp}  {record.event_type:<18} "
                f"{record.signature_metadata.trust:<8} {record.event_id}"
            )

    elif args.command == 'verify-event':
        result = engine.verify_event(args.event_id)
        _print_json(result)
        return 0 if result.valid else 2

    elif args.command == 'verify-chain':
        result = engine.verify_chain()
        _print_json(result)
        return 0 if result.valid else 2

    elif args.command == 'status':
        chain = engine.chain_status()
        print(f"Device: {camera.device_id}")
        print(f"Chain valid: {'✓' if chain.chain_valid else '✗'}")
        print(f"Events: {chain.total_events} "
              f"(signed {chain.signed_events}, verified {chain.verified_events}, "
              f"orphaned {chain.orphaned_events})")
        print(f"Signature rate: {chain.signature_rate}%")
        for issue in chain.issues:
            print(f"  ✗ position {issue.position}: {issue.issue} "
                  f"expected={issue.expected} actual={issue.actual}")

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = _config_from_args(args)
    configure_logging(config.log_level)

    if args.command == 'serve':
        serve(config)
        return 0

    if args.command == 'keygen':
        if args.path.exists():
            print(f"Error: {args.path} already exists")
            return 1
        signer = SoftwareSigner.load_or_generate(args.path)
        print(f"✓ Key written to {args.path}")
        print(f"  Key ID: {signer.key_id}")
        return 0

    camera = build_camera(config)
    try:
        return run_command(args, camera)
    except ProvenanceError as e:
        print(f"Error: {e}")
        return 1
    finally:
        camera.close()


if __name__ == "__main__":
    sys.exit(main())
