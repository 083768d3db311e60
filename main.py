"""
Lead Enrichment Engine - Main Entry Point
=========================================
Enrich and score leads from a JSON file.

Usage:
    python main.py leads.json                     # Process every lead in the file
    python main.py leads.json --concurrency 5     # Wider batch windows
    python main.py leads.json --output out.json   # Also write full results as JSON
    python main.py leads.json --log-level DEBUG --log-file logs/run.log

The input file holds a single lead object or a list of them:
    [{"company_name": "Acme Corp.", "website_url": "acme.com", "location": "Austin, TX"}]
"""

import argparse
import json
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from lead_enricher.config.log_setup import configure_logging  # noqa: E402
from lead_enricher.engine import create_engine  # noqa: E402
from lead_enricher.errors import LeadEnricherError  # noqa: E402


def load_leads(path):
    """Read one lead object or a list of lead objects"""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        return [data]
    if not isinstance(data, list):
        raise ValueError("Lead file must contain a JSON object or a list of objects")
    return data


def print_summary(results, total):
    print("=" * 72)
    print(f"{'COMPANY':<32} {'SCORE':>5}  {'TAG':<7} {'FAILED STEPS'}")
    print("-" * 72)
    for result in results:
        scoring = result.lead_score_and_notes
        failed = [s.step_name for s in result.processing_steps if s.status.value == "failed"]
        print(
            f"{result.company_name[:32]:<32} {scoring.score:>5}  "
            f"{scoring.potential_tag.value:<7} {', '.join(failed) or '-'}"
        )
    print("-" * 72)
    print(f"Processed {len(results)}/{total} leads")


def main():
    parser = argparse.ArgumentParser(description="Lead Enrichment Engine")
    parser.add_argument(
        "input",
        type=str,
        help="JSON file with a lead object or a list of leads",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write full processing results to this JSON file",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Leads processed concurrently per batch window (default: 3)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-step timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file (rotated daily)",
    )

    args = parser.parse_args()
    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")

    configure_logging(level=args.log_level, log_file=args.log_file)

    try:
        leads = load_leads(args.input)
    except (OSError, ValueError) as e:
        print(f"Could not read {args.input}: {e}", file=sys.stderr)
        return 2

    with create_engine(step_timeout=args.timeout, batch_concurrency=args.concurrency) as engine:
        if len(leads) == 1:
            try:
                results = [engine.process_lead(leads[0])]
            except LeadEnricherError as e:
                print(f"Lead failed: {e}", file=sys.stderr)
                results = []
        else:
            results = engine.process_batch_leads(leads)

        print_summary(results, len(leads))

        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                json.dump([r.model_dump(mode="json") for r in results], f, indent=2)
            print(f"Results written to {args.output}")

        stats = engine.get_stats()
        print(f"Completed: {stats['completed']}  Failed: {stats['failed']}")

    return 0 if len(results) == len(leads) else 1


if __name__ == "__main__":
    sys.exit(main())
