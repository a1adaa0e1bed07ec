import argparse
import json
import sys
from itertools import combinations
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.repo import list_answer_sets
from app.services.compatibility import score_pairs


def load_answer_sets(path: str | None, limit: int) -> dict[str, dict]:
    if path:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise SystemExit(f"{path} must map user ids to answer objects")
        return {str(k): v for k, v in data.items() if isinstance(v, dict)}
    return list_answer_sets(limit=limit)


def main() -> None:
    parser = argparse.ArgumentParser(description="Score questionnaire compatibility for every pair of profiles")
    parser.add_argument("--input", type=str, default="", help="JSON file of {user_id: answers}; reads approved profiles when omitted")
    parser.add_argument("--user", type=str, default="", help="only score pairs that include this user id")
    parser.add_argument("--limit", type=int, default=500)
    parser.add_argument("--min-score", type=int, default=0)
    parser.add_argument("--workers", type=int, default=1)
    args = parser.parse_args()

    answer_sets = load_answer_sets(args.input or None, args.limit)
    pairs = [
        ((a, b), answer_sets[a], answer_sets[b])
        for a, b in combinations(sorted(answer_sets), 2)
        if not args.user or args.user in (a, b)
    ]
    results = score_pairs(pairs, max_workers=args.workers)

    rows = [
        {"user_a": a, "user_b": b, **result.to_dict()}
        for (a, b), result in results
        if result.average >= args.min_score
    ]
    rows.sort(key=lambda r: (-r["average"], r["user_a"], r["user_b"]))
    print(json.dumps({"profiles": len(answer_sets), "pairs": len(pairs), "results": rows}, indent=2))


if __name__ == "__main__":
    main()
