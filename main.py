#!/usr/bin/env python3
"""
tobac - team-based access control for Kubernetes.

Runs the validating admission webhook, or exercises the team directory and decision
engine from the command line.
"""

import argparse
import json
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep tobac imports lazy (inside functions) so `--help` works without the
# server/kubernetes dependencies being importable.
#


def list_teams() -> None:
    """Refresh the team directory once and print it as JSON."""
    from tobac.core.config import get_config
    from tobac.directory.cache import build_team_cache

    cache = build_team_cache(get_config())
    teams = cache.refresh()
    print(
        json.dumps(
            [t.model_dump() for t in sorted(teams.values(), key=lambda t: t.team_id)],
            indent=2,
        )
    )
    print(f"\n{len(teams)} team(s)", file=sys.stderr)


def evaluate_file(path: str, resolver=None) -> int:
    """
    Decide one AdmissionReview read from a JSON file ("-" for stdin).

    The team directory is refreshed once before deciding. A DELETE without `oldObject` is
    checked against the live object read from the current kubeconfig context. Returns a
    process exit code: 0 when allowed, 1 when denied.
    """
    from tobac.api.admission import parse_review
    from tobac.api.webhook import review_admission
    from tobac.core.config import get_config
    from tobac.directory.cache import build_team_cache
    from tobac.providers.k8s_provider import get_resource_resolver

    if path == "-":
        payload = sys.stdin.read()
    else:
        with open(path, "r", encoding="utf-8") as f:
            payload = f.read()

    cfg = get_config()
    review = parse_review(json.loads(payload))
    cache = build_team_cache(cfg)
    if not cache.sync_once():
        print("⚠️ Team directory refresh failed; every team will be reported as unknown", file=sys.stderr)

    if resolver is None:
        resolver = get_resource_resolver()
    body = review_admission(review, cfg=cfg, teams=cache, resolver=resolver)
    print(json.dumps(body, indent=2))
    return 0 if body["response"]["allowed"] else 1


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Team-based access control admission webhook for Kubernetes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the admission webhook over TLS
  python main.py --serve-webhook --cert /certs/tls.crt --key /certs/tls.key

  # Print the current team directory
  TEAMS_FILE=./teams.yaml python main.py --list-teams

  # Decide a single AdmissionReview
  python main.py --evaluate review.json
        """,
    )

    parser.add_argument("--serve-webhook", action="store_true", help="Run the validating admission webhook server")
    parser.add_argument("--list-teams", action="store_true", help="Fetch the team directory once and print it")
    parser.add_argument("--evaluate", metavar="FILE", help="Decide an AdmissionReview JSON file ('-' for stdin)")
    parser.add_argument("--host", default="0.0.0.0", help="Webhook server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8443, help="Webhook server listen port (default: 8443)")
    parser.add_argument(
        "--cert",
        help="File containing the x509 certificate for HTTPS (CA cert, if any, concatenated after server cert)",
    )
    parser.add_argument("--key", help="File containing the x509 private key matching --cert")

    args = parser.parse_args()

    try:
        if args.serve_webhook:
            from tobac.api.webhook import run as run_webhook

            run_webhook(host=args.host, port=args.port, cert_file=args.cert, key_file=args.key)
            return

        if args.list_teams:
            list_teams()
            return

        if args.evaluate:
            sys.exit(evaluate_file(args.evaluate))

        # No arguments provided
        parser.print_help()

    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
