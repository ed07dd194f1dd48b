#!/usr/bin/env python3
"""
Dev helper: call the external email API of a running Mail Gateway backend.

Builds a send-email or query-email request body from the command line and
POST-s it with the internal API key.

Usage
-----
# Send a plain-text email to one recipient, targeting localhost:8000
python scripts/send_test_email.py send --to you@example.com

# Send HTML with a custom sender display name
python scripts/send_test_email.py send --to you@example.com --html "<b>hi</b>" --from-name Billing

# Newest 5 emails received by an address in the last hour
python scripts/send_test_email.py query --to-email inbox@example.com --minutes-ago 60 --size 5

# Print the request body without sending it
python scripts/send_test_email.py send --to you@example.com --dry-run

Environment / .env
------------------
INTERNAL_API_KEY   The gateway's access key (required unless --api-key is given).

The script reads .env from the project root and from backend/ using
python-dotenv; values already in the environment win.
"""

import argparse
import json
import os
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Body builders
# ---------------------------------------------------------------------------

def _build_send_body(args) -> dict:
    """Body for POST /external/send-email (optional fields omitted when unset)."""
    body = {"to": args.to, "subject": args.subject}
    if args.text:
        body["text"] = args.text
    if args.html:
        body["html"] = args.html
    if not args.text and not args.html:
        body["text"] = "This is a test email sent through the Mail Gateway."
    if args.from_name:
        body["fromName"] = args.from_name
    return body


def _build_query_body(args) -> dict:
    """Body for POST /external/query-email."""
    body = {"toEmail": args.to_email}
    optional = {
        "fromEmail": args.from_email,
        "startTime": args.start_time,
        "endTime": args.end_time,
        "minutesAgo": args.minutes_ago,
        "size": args.size,
    }
    body.update({key: value for key, value in optional.items() if value is not None})
    return body


_COMMANDS = {
    "send": ("/external/send-email", _build_send_body),
    "query": ("/external/query-email", _build_query_body),
}


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2, ensure_ascii=False))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="send_test_email.py",
        description=textwrap.dedent("""\
            Call the Mail Gateway external API.

            Reads INTERNAL_API_KEY from the environment or a .env file in the
            project root.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--api-key",
        default=None,
        metavar="KEY",
        help="Override the API key. Defaults to the INTERNAL_API_KEY env var.",
    )
    parser.add_argument(
        "--bearer",
        action="store_true",
        help="Send the key as 'Authorization: Bearer' instead of X-API-KEY.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the request body without sending it.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    send = sub.add_parser("send", help="POST /external/send-email")
    send.add_argument("--to", action="append", required=True, metavar="ADDRESS",
                      help="Recipient address (repeat for several)")
    send.add_argument("--subject", default="Mail Gateway test",
                      help='Subject (default: "Mail Gateway test")')
    send.add_argument("--text", default=None, help="Plain-text body")
    send.add_argument("--html", default=None, help="HTML body")
    send.add_argument("--from-name", default=None, help="Sender display name override")

    query = sub.add_parser("query", help="POST /external/query-email")
    query.add_argument("--to-email", required=True, help="Recipient address to look up")
    query.add_argument("--from-email", default=None, help="Only emails from this sender")
    query.add_argument("--start-time", default=None, metavar="'YYYY-MM-DD HH:MM:SS'")
    query.add_argument("--end-time", default=None, metavar="'YYYY-MM-DD HH:MM:SS'")
    query.add_argument("--minutes-ago", type=int, default=None,
                       help="Only emails from the last N minutes (overrides start/end)")
    query.add_argument("--size", type=int, default=None, help="Max rows (default 10, max 50)")

    return parser


def main() -> int:
    # Locate project root (scripts/ lives one level below the root)
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    args = _parser().parse_args()

    api_key = args.api_key or os.getenv("INTERNAL_API_KEY", "")
    if not api_key and not args.dry_run:
        print(
            "ERROR: No API key found.\n"
            "Set INTERNAL_API_KEY in your environment or .env file, or pass --api-key.",
            file=sys.stderr,
        )
        return 1

    path, builder = _COMMANDS[args.command]
    body = builder(args)
    endpoint = f"{args.url.rstrip('/')}{path}"

    print(f"Endpoint  : {endpoint}")

    if args.dry_run:
        print("\n[DRY RUN] Body:")
        print(json.dumps(body, indent=2, ensure_ascii=False))
        return 0

    if args.bearer:
        headers = {"Authorization": f"Bearer {api_key}"}
    else:
        headers = {"X-API-KEY": api_key}

    try:
        response = httpx.post(endpoint, json=body, headers=headers, timeout=30.0)
    except httpx.HTTPError as e:
        print(f"\n[FAIL] Request error: {e}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
