"""
Image Similarity Scoring Script

Scores a CSV of (target_url, generated_url) rows through the running
scoring service and writes the scores next to the input file.

Usage:
    python scoring_cli.py <csv_path> [--service-url URL] [--batch]
"""

import argparse
import time
from datetime import datetime
from pathlib import Path

import requests

try:
    import pandas as pd
except ModuleNotFoundError as e:
    if e.name == "pandas":
        raise ImportError("'pandas' library is required to run this script.") from e
    else:
        raise

SCORING_PATH = "/scorer/v1/scoring"
# Largest batch the service accepts in one request
MAX_BATCH_SIZE = 128
SCORE_COLUMNS = ["final", "similarity", "semantic", "perceptual", "structural", "low_confidence"]


def score_single(service_url: str, target_url: str, generated_url: str) -> dict:
    """Score a single image pair."""
    request_data = {"target_image": target_url, "generated_image": generated_url}

    try:
        response = requests.post(f"{service_url}{SCORING_PATH}/score", json=request_data, timeout=30)
        if response.status_code == 200:
            return response.json()
        return {"error": f"HTTP {response.status_code}", "final": None}
    except requests.RequestException as e:
        return {"error": str(e), "final": None}


def score_batch(service_url: str, pairs: list[dict]) -> dict:
    """Score multiple image pairs in one request."""
    request_data = {"scorings": pairs}

    try:
        response = requests.post(f"{service_url}{SCORING_PATH}/batch", json=request_data, timeout=300)
        if response.status_code == 200:
            return response.json()
        return {"error": f"HTTP {response.status_code}", "results": []}
    except requests.RequestException as e:
        return {"error": str(e), "results": []}


def flatten_result(result: dict) -> dict:
    """Flatten a score response into CSV columns."""
    components = result.get("components") or {}
    return {
        "final": result.get("final"),
        "similarity": result.get("similarity"),
        "semantic": components.get("semantic"),
        "perceptual": components.get("perceptual"),
        "structural": components.get("structural"),
        "low_confidence": result.get("final") is not None and not components,
    }


def run_scoring(
    service_url: str, df: pd.DataFrame, batch: bool = False, batch_size: int = MAX_BATCH_SIZE
) -> tuple[pd.DataFrame, dict]:
    """Score every row and collect run statistics."""
    start_time = time.time()

    if batch:
        batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        pairs = [
            {"target_image": row["target_url"], "generated_image": row["generated_url"]} for _, row in df.iterrows()
        ]
        results = []
        api_calls = 0
        for offset in range(0, len(pairs), batch_size):
            chunk = pairs[offset : offset + batch_size]
            batch_result = score_batch(service_url, chunk)
            api_calls += 1
            if "error" in batch_result:
                print(f"Rows {offset + 1}-{offset + len(chunk)}: Batch scoring failed - {batch_result['error']}")
                results.extend({"error": batch_result["error"], "final": None} for _ in chunk)
            else:
                results.extend(batch_result.get("results", []))
    else:
        results = []
        for i, row in df.iterrows():
            result = score_single(service_url, row["target_url"], row["generated_url"])
            if result.get("final") is None:
                print(f"Row {i + 1}: Error - {result.get('error', 'Unknown error')}")
            else:
                print(f"Row {i + 1}: {result['final']}")
            results.append(result)
        api_calls = len(df)

    total_time = time.time() - start_time
    scores = pd.DataFrame([flatten_result(r) for r in results], columns=SCORE_COLUMNS, index=df.index[: len(results)])
    scored = df.join(scores)

    successful = scored["final"].notna().sum()
    stats = {
        "method": "batch" if batch else "single",
        "total_pairs": len(df),
        "successful": int(successful),
        "low_confidence": int(scored["low_confidence"].fillna(False).astype(bool).sum()),
        "avg_final_score": float(pd.to_numeric(scored["final"], errors="coerce").mean()) if successful else 0.0,
        "total_time_seconds": total_time,
        "api_calls": api_calls,
        "timestamp": datetime.now().isoformat(),
    }
    return scored, stats


def main():
    parser = argparse.ArgumentParser(description="Score generated images against their targets")
    parser.add_argument("csv_path", help="CSV file with target_url and generated_url columns")
    parser.add_argument("--service-url", default="http://localhost:8000", help="Service URL")
    parser.add_argument("--batch", action="store_true", help="Use batch scoring instead of single")
    parser.add_argument(
        "--batch-size", type=int, default=MAX_BATCH_SIZE, help=f"Pairs per batch request (at most {MAX_BATCH_SIZE})"
    )

    args = parser.parse_args()

    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        print(f"CSV file not found: {csv_path}")
        return

    df = pd.read_csv(csv_path)
    missing = {"target_url", "generated_url"} - set(df.columns)
    if missing:
        print(f"CSV is missing columns: {sorted(missing)}")
        return

    print(f"Loaded {len(df)} rows from {csv_path}")
    scored, stats = run_scoring(args.service_url, df, batch=args.batch, batch_size=args.batch_size)

    output_path = csv_path.parent / f"{csv_path.stem}_with_scores.csv"
    scored.to_csv(output_path, index=False)
    print(f"Results saved to: {output_path}")
    print(
        f"Scored {stats['successful']}/{stats['total_pairs']} pairs "
        f"({stats['low_confidence']} low confidence) in {stats['total_time_seconds']:.2f}s"
    )


if __name__ == "__main__":
    main()
