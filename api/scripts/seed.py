import argparse
import random
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pulse.config import DEDUP_SECRET, DEV_MODE, STORE_BACKEND
from pulse.deps import build_store, resolve_dedup_secret
from pulse.models import init_schema
from pulse.schemas import CreateSurveyRequest, SurveySettings
from pulse.services.survey_service import SurveyService

DEMO_QUESTIONS = """How supported do you feel by the group?
Which events should we run next? (multi-select)
Anything else we should know? (free-text)"""

DEMO_OPTIONS = "Q2: Social events, Mentorship program, Speaker series, Ally training"

DEMO_COMMENTS = [
    "More evening events please",
    "The mentorship pilot was great",
    "Hard to find the calendar, maybe pin it?",
    "",
]


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo pulse survey with anonymous responses")
    parser.add_argument("--creator", type=str, default="U_DEMO_CREATOR")
    parser.add_argument("--n-responses", type=int, default=25)
    parser.add_argument("--title", type=str, default="Q1 Team Pulse Check")
    parser.add_argument("--share-freetext", action="store_true")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    rng = random.Random(args.seed)
    if STORE_BACKEND == "sql":
        init_schema()
    service = SurveyService(build_store(STORE_BACKEND), resolve_dedup_secret(DEDUP_SECRET, DEV_MODE))

    survey = service.create_from_text(
        args.creator,
        CreateSurveyRequest(
            title=args.title,
            questions_text=DEMO_QUESTIONS,
            options_text=DEMO_OPTIONS,
            settings=SurveySettings(show_results=True, share_freetext=args.share_freetext),
        ),
    )
    options = survey["questions"][1]["options"]
    for i in range(args.n_responses):
        answers = {
            "q_0": rng.randint(1, 5),
            "q_1": rng.sample(options, k=rng.randint(0, len(options))),
            "q_2": rng.choice(DEMO_COMMENTS),
        }
        service.submit_response(survey["id"], f"U_DEMO_{i:04d}", answers)

    print("Seed completed")
    print(f"- survey_id: {survey['id']}")
    print(f"- responses: {service.responses.count(survey['id'])}")


if __name__ == "__main__":
    main()
