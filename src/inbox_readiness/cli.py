import argparse
import asyncio
import logging
import sys

from .core import GLOBAL_TIMEOUT, generate_report, human_report
from .exceptions import GlobalTimeoutError, InvalidDomainError


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description="Cold email domain readiness checker (MX/SPF/DKIM/DMARC/WHOIS age)")
    parser.add_argument("domain", help="domain to check (e.g. example.com)")
    parser.add_argument("--json-out", help="Write JSON report to this file")
    parser.add_argument("--quiet", action="store_true", help="Only output JSON")
    parser.add_argument("--timeout", type=float, default=GLOBAL_TIMEOUT,
                        help=f"Overall time budget in seconds (default {GLOBAL_TIMEOUT:g})")
    parser.add_argument("--selector", help="Check only this DKIM selector instead of the well-known list")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        selectors = [args.selector.strip()] if args.selector else None
        report = asyncio.run(generate_report(args.domain, timeout=args.timeout, dkim_selectors=selectors))
    except InvalidDomainError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except GlobalTimeoutError as e:
        print(f"Request timeout ({e}). Some DNS servers may be slow to respond.", file=sys.stderr)
        sys.exit(3)
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(2)

    payload = report.model_dump_json(by_alias=True, indent=2)
    if args.json_out:
        with open(args.json_out, "w", encoding="utf-8") as f:
            f.write(payload)
        if not args.quiet:
            print(f"Wrote JSON report to {args.json_out}")

    if not args.quiet:
        print(human_report(report))
    else:
        print(payload)

if __name__ == "__main__":
    main()
