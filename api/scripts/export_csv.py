import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pulse.config import DEDUP_SECRET, DEV_MODE, STORE_BACKEND
from pulse.deps import build_store, resolve_dedup_secret
from pulse.services.survey_service import SurveyService


def main() -> None:
    parser = argparse.ArgumentParser(description="Export a survey's anonymous responses as CSV")
    parser.add_argument("survey_id", type=str)
    parser.add_argument("--output", type=str, default="")
    args = parser.parse_args()

    service = SurveyService(build_store(STORE_BACKEND), resolve_dedup_secret(DEDUP_SECRET, DEV_MODE))
    survey = service.get_survey(args.survey_id)
    if survey is None:
        print(f"Survey {args.survey_id} not found", file=sys.stderr)
        sys.exit(1)

    csv_text = service.build_csv_export(survey, service.get_responses(args.survey_id))
    if args.output:
        Path(args.output).write_text(csv_text, encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        print(csv_text)


if __name__ == "__main__":
    main()
