"""
Command line entry point

    python -m race_results ROSTER.json RESULTS.pdf [RESULTS.xlsx ...]
"""

import logging
import sys

from .classification import Classification, season_totals, summarize_classification
from .config import settings
from .errors import RaceResultsError
from .processing import process_race
from .roster import load_members

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 2:
        print("Usage: python -m race_results ROSTER.json RESULTS_FILE [RESULTS_FILE ...]")
        return 2

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    roster_path, result_files = argv[0], argv[1:]
    try:
        members = load_members(roster_path)
    except RaceResultsError as exc:
        print(f"Cannot load roster: {exc}")
        return 1

    classification = Classification()
    failures = 0
    for path in result_files:
        print(f"Parsing: {path}")
        try:
            # a file only reaches the season table once it parsed completely
            race = process_race(path, None, members)
        except RaceResultsError as exc:
            print(f"  Failed: {exc}")
            failures += 1
            continue
        print(f"  {len(race)} result(s)")
        classification.merge(race)

    df = classification.to_dataframe()
    if df.empty:
        print("No results found!")
        return 1 if failures else 0

    print("\n=== Summary ===")
    for k, v in summarize_classification(df).items():
        print(f"  {k}: {v}")

    print("\n=== Races ===")
    for name in classification.get_distinct_race_names():
        print(f"  {name}: {(df['race_name'] == name).sum()} result(s)")

    print("\n=== Season Totals ===")
    print(season_totals(df).head(25).to_string(index=False))

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
