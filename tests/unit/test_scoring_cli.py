from unittest.mock import Mock, patch

import pandas as pd
import pytest
import requests

from app.scoring_cli import MAX_BATCH_SIZE, flatten_result, run_scoring, score_batch, score_single

SERVICE_URL = "http://localhost:8000"


def _response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    return response


@pytest.fixture
def pairs_df():
    return pd.DataFrame(
        {
            "target_url": ["https://images.example.com/t1.png", "https://images.example.com/t2.png"],
            "generated_url": ["https://images.example.com/g1.png", "https://images.example.com/g2.png"],
        }
    )


class TestScoringRequests:
    """Test HTTP calls to the scoring service"""

    @patch("app.scoring_cli.requests.post")
    def test_score_single(self, mock_post):
        mock_post.return_value = _response(payload={"final": 71, "similarity": 0.71})

        result = score_single(SERVICE_URL, "t.png", "g.png")

        assert result["final"] == 71
        url = mock_post.call_args.args[0]
        assert url == "http://localhost:8000/scorer/v1/scoring/score"
        assert mock_post.call_args.kwargs["json"] == {"target_image": "t.png", "generated_image": "g.png"}

    @patch("app.scoring_cli.requests.post")
    def test_score_single_http_error(self, mock_post):
        mock_post.return_value = _response(status_code=503)

        result = score_single(SERVICE_URL, "t.png", "g.png")

        assert result == {"error": "HTTP 503", "final": None}

    @patch("app.scoring_cli.requests.post", side_effect=requests.ConnectionError("refused"))
    def test_score_single_connection_error(self, mock_post):
        result = score_single(SERVICE_URL, "t.png", "g.png")

        assert result["final"] is None
        assert "refused" in result["error"]

    @patch("app.scoring_cli.requests.post")
    def test_score_batch(self, mock_post):
        mock_post.return_value = _response(payload={"results": [{"final": 50}]})

        result = score_batch(SERVICE_URL, [{"target_image": "t.png", "generated_image": "g.png"}])

        assert result["results"] == [{"final": 50}]
        assert mock_post.call_args.args[0].endswith("/scorer/v1/scoring/batch")


class TestResultFlattening:
    """Test conversion of responses into CSV columns"""

    def test_full_confidence(self):
        row = flatten_result(
            {"final": 80, "similarity": 0.8, "components": {"semantic": 0.9, "perceptual": 0.7, "structural": 0.6}}
        )

        assert row["semantic"] == 0.9
        assert row["structural"] == 0.6
        assert row["low_confidence"] is False

    def test_low_confidence(self):
        row = flatten_result({"final": 68, "similarity": 0.68})

        assert row["semantic"] is None
        assert row["low_confidence"] is True

    def test_error(self):
        row = flatten_result({"error": "HTTP 500", "final": None})

        assert row["final"] is None
        assert row["low_confidence"] is False


class TestRunScoring:
    """Test scoring a whole CSV frame"""

    @patch("app.scoring_cli.score_single")
    def test_single_mode(self, mock_score, pairs_df):
        mock_score.side_effect = [
            {"final": 80, "similarity": 0.8, "components": {"semantic": 0.9, "perceptual": 0.7, "structural": 0.6}},
            {"final": 66, "similarity": 0.66},
        ]

        scored, stats = run_scoring(SERVICE_URL, pairs_df)

        assert list(scored["final"]) == [80, 66]
        assert stats["method"] == "single"
        assert stats["successful"] == 2
        assert stats["low_confidence"] == 1
        assert stats["api_calls"] == 2
        assert stats["avg_final_score"] == pytest.approx(73.0)

    @patch("app.scoring_cli.score_batch")
    def test_batch_mode(self, mock_batch, pairs_df):
        mock_batch.return_value = {
            "results": [
                {"final": 40, "similarity": 0.4, "components": {"semantic": 0.4}},
                {"final": 60, "similarity": 0.6, "components": {"semantic": 0.6}},
            ]
        }

        scored, stats = run_scoring(SERVICE_URL, pairs_df, batch=True)

        pairs = mock_batch.call_args.args[1]
        assert pairs[0] == {
            "target_image": "https://images.example.com/t1.png",
            "generated_image": "https://images.example.com/g1.png",
        }
        assert list(scored["semantic"]) == [0.4, 0.6]
        assert stats["method"] == "batch"
        assert stats["api_calls"] == 1
        assert stats["low_confidence"] == 0

    @patch("app.scoring_cli.score_batch")
    def test_batch_mode_splits_large_frames(self, mock_batch):
        df = pd.DataFrame(
            {
                "target_url": [f"https://images.example.com/t{i}.png" for i in range(300)],
                "generated_url": [f"https://images.example.com/g{i}.png" for i in range(300)],
            }
        )
        mock_batch.side_effect = lambda url, pairs: {"results": [{"final": 50, "similarity": 0.5}] * len(pairs)}

        scored, stats = run_scoring(SERVICE_URL, df, batch=True)

        sizes = [len(call.args[1]) for call in mock_batch.call_args_list]
        assert sizes == [MAX_BATCH_SIZE, MAX_BATCH_SIZE, 44]
        assert mock_batch.call_args_list[2].args[1][0]["target_image"] == "https://images.example.com/t256.png"
        assert stats["api_calls"] == 3
        assert stats["successful"] == 300

    @patch("app.scoring_cli.score_batch")
    def test_failed_chunk_keeps_rows_aligned(self, mock_batch, pairs_df):
        mock_batch.side_effect = [{"error": "HTTP 503", "results": []}, {"results": [{"final": 60, "similarity": 0.6}]}]

        scored, stats = run_scoring(SERVICE_URL, pairs_df, batch=True, batch_size=1)

        assert scored["final"].isna().tolist() == [True, False]
        assert scored["final"].iloc[1] == 60
        assert stats["api_calls"] == 2
        assert stats["successful"] == 1

    @patch("app.scoring_cli.score_single", return_value={"error": "HTTP 500", "final": None})
    def test_all_failed(self, mock_score, pairs_df):
        scored, stats = run_scoring(SERVICE_URL, pairs_df)

        assert stats["successful"] == 0
        assert stats["avg_final_score"] == 0.0
        assert scored["final"].isna().all()
