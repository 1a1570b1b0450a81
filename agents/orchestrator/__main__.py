"""
Run one analysis from the command line.

    python -m agents.orchestrator AAPL
    MOCK_LLM=true MOCK_MARKET_DATA=true python -m agents.orchestrator MSFT --json
"""
import argparse
import asyncio
import sys

from agents.orchestrator.workflow import FinancialOrchestrator
from libs.config import get_settings
from libs.errors import StageError
from libs.log import configure_logging


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Analyse a stock ticker")
    parser.add_argument("symbol", help="Ticker symbol, e.g. AAPL")
    parser.add_argument("--json", action="store_true", help="Print the full record as JSON")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    orchestrator = FinancialOrchestrator(settings=settings)
    orchestrator.thinking_events.subscribe(
        lambda event: print(f"  [{event[0]}] {event[1].thought}", file=sys.stderr)
    )

    try:
        record = asyncio.run(orchestrator.run(args.symbol))
    except StageError as e:
        print(f"Analysis failed: [{e.code}] {e.error.message}", file=sys.stderr)
        return 1

    if args.json:
        print(record.model_dump_json(indent=2))
    else:
        print(record.full_data["reporter"]["full_report"])
        print(f"\nRecommendation: {record.final_recommendation} "
              f"(confidence {record.overall_confidence:.0%}, score {record.composite_score:.1f}/10)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
