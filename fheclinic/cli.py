#!/usr/bin/env python3
"""
FHE Clinic Command Line Interface

Usage:
    fheclinic demo [--seed N] [--json] [--commentary] [--output FILE]
    fheclinic encrypt --value <number> | --vitals <file>
    fheclinic lwe --message <number> [--scale <number>]
    fheclinic verify-log --file <file>
"""

import argparse
import json
import sys

from .config import LOG_JSON, LOG_LEVEL, LWE_SCALE, commentary_enabled, is_debug
from .logging_config import configure_logging


def load_json(path: str):
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def _build_simulator(seed):
    from .simulator import FheSimulator
    from .sources import SeededRandomness, SequenceIdentity

    if seed is None:
        return FheSimulator()
    return FheSimulator(
        randomness=SeededRandomness(seed),
        identity=SequenceIdentity(prefix=f"seed{seed}"),
    )


def cmd_demo(args):
    """Run a full patient visit and print the protocol log."""
    from .commentary import CommentaryService
    from .errors import PayloadShapeError
    from .payloads import VitalsRecord
    from .render import render_envelope, render_log
    from .scenario import DEFAULT_VITALS, PatientVisit

    vitals = DEFAULT_VITALS
    if args.vitals:
        try:
            vitals = VitalsRecord.from_dict(load_json(args.vitals))
        except (PayloadShapeError, TypeError) as e:
            print(f"✗ INVALID PAYLOAD: {e}", file=sys.stderr)
            return 1
    if args.commentary and not commentary_enabled():
        print("No GEMINI_API_KEY set; commentary will use fallback messages", file=sys.stderr)
    visit = PatientVisit(
        simulator=_build_simulator(args.seed),
        commentary=CommentaryService() if args.commentary else None,
    )
    result = visit.run(vitals)

    if args.output:
        save_json(result.log.to_list(), args.output)
        print(f"Protocol log saved to: {args.output}", file=sys.stderr)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return 0

    print("=" * 72)
    print("HOSPITAL AUDIT LOG  (TFHE / MATH PROOF)")
    print("=" * 72)
    print(render_log(result.log.entries()))
    print("=" * 72)
    print(render_envelope(result.decrypted))
    summary = result.summary()
    print(f"\nDiagnosis: {summary['diagnosisScore']}  "
          f"Lab deviation: {summary['labDeviationScore']}  "
          f"Bill: ${summary['billAmount']}")
    for role, message in result.agent_messages.items():
        print(f"  {role.display_name}: {message}")
    return 0


def cmd_encrypt(args):
    """Encrypt one value and print its audit record."""
    from .errors import PayloadShapeError

    if args.value is None and not args.vitals:
        print("✗ Provide --value or --vitals", file=sys.stderr)
        return 2

    raw = args.value if args.value is not None else load_json(args.vitals)
    simulator = _build_simulator(args.seed)
    try:
        record = simulator.encrypt_value(raw)
    except PayloadShapeError as e:
        print(f"✗ INVALID PAYLOAD: {e}", file=sys.stderr)
        return 1

    print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_lwe(args):
    """Print a toy LWE example."""
    from .errors import PayloadShapeError

    simulator = _build_simulator(args.seed)
    try:
        example = simulator.codec.build_toy_lwe_example(args.message, args.scale)
    except PayloadShapeError as e:
        print(f"✗ INVALID PAYLOAD: {e}", file=sys.stderr)
        return 1
    print(json.dumps(example.to_dict(), indent=2))
    return 0


def cmd_verify_log(args):
    """Verify an exported protocol log's hash chain."""
    from .audit import LogEntry
    from .protocol_log import verify_log_chain

    data = load_json(args.file)
    try:
        entries = [LogEntry.from_dict(item) for item in data]
    except (TypeError, ValueError) as e:
        print(f"✗ INVALID: malformed log ({e})")
        return 1

    result = verify_log_chain(entries)
    if result.valid:
        print(f"✓ VALID ({result.entries} entries)")
        return 0
    print(f"✗ INVALID: {result.reason} at entry {result.broken_at}")
    return 1


def _number(text: str):
    value = float(text)
    return int(value) if value.is_integer() else value


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="FHE Clinic Simulation CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fheclinic demo                          Run a patient visit
  fheclinic demo --seed 7 --json          Reproducible visit as JSON
  fheclinic encrypt --value 40
  fheclinic encrypt --vitals vitals.json
  fheclinic lwe --message 40 --scale 100
  fheclinic verify-log --file log.json
        """
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # demo
    demo_parser = subparsers.add_parser("demo", help="Run a patient visit")
    demo_parser.add_argument("-s", "--seed", type=int, help="Seed for reproducible output")
    demo_parser.add_argument("-V", "--vitals", help="Vitals JSON file")
    demo_parser.add_argument("-j", "--json", action="store_true", help="Print JSON instead of text")
    demo_parser.add_argument("-c", "--commentary", action="store_true",
                             help="Ask the commentary service for analysis")
    demo_parser.add_argument("-o", "--output", help="Save the protocol log to a file")

    # encrypt
    encrypt_parser = subparsers.add_parser("encrypt", help="Encrypt a value")
    encrypt_parser.add_argument("-v", "--value", type=_number, help="Scalar value")
    encrypt_parser.add_argument("-V", "--vitals", help="Vitals or profile JSON file")
    encrypt_parser.add_argument("-s", "--seed", type=int, help="Seed for reproducible output")

    # lwe
    lwe_parser = subparsers.add_parser("lwe", help="Show a toy LWE example")
    lwe_parser.add_argument("-m", "--message", type=_number, required=True, help="Message")
    lwe_parser.add_argument("--scale", type=_number, default=LWE_SCALE, help="Scale factor")
    lwe_parser.add_argument("-s", "--seed", type=int, help="Seed for reproducible output")

    # verify-log
    verify_parser = subparsers.add_parser("verify-log", help="Verify an exported protocol log")
    verify_parser.add_argument("-f", "--file", required=True, help="Protocol log JSON file")

    args = parser.parse_args(argv)
    configure_logging(
        level="DEBUG" if is_debug() else args.log_level,
        json_format=LOG_JSON,
    )

    if args.command == "demo":
        return cmd_demo(args)
    elif args.command == "encrypt":
        return cmd_encrypt(args)
    elif args.command == "lwe":
        return cmd_lwe(args)
    elif args.command == "verify-log":
        return cmd_verify_log(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
