"""Tests for the AI room analysis and TV placement endpoints."""
import json
from unittest.mock import AsyncMock

from tradesbook.services.ai_preview import AIPreviewError, strip_data_url

IMAGE = "data:image/jpeg;base64," + "A" * 200


def _chat(content: dict) -> dict:
    return {"choices": [{"message": {"content": json.dumps(content)}}]}


def test_strip_data_url():
    assert strip_data_url("data:image/png;base64,QUJD") == "QUJD"
    assert strip_data_url("  QUJD ") == "QUJD"


class TestAnalyzeRoom:
    def test_not_configured(self, client):
        r = client.post("/api/ai/analyze-room", json={"imageBase64": IMAGE})
        assert r.status_code == 503

    def test_image_required(self, client):
        assert client.post("/api/ai/analyze-room", json={"imageBase64": "abc"}).status_code == 422

    def test_analysis(self, client, monkeypatch):
        post = AsyncMock(
            return_value=_chat(
                {
                    "wallSuitability": "Plasterboard, needs cavity fixings",
                    "recommendedTVSize": '55"',
                    "potentialChallenges": "Radiator below the wall",
                    "installationNotes": "Run cables through the stud wall",
                }
            )
        )
        monkeypatch.setattr("tradesbook.services.ai_preview._post", post)

        r = client.post("/api/ai/analyze-room", json={"imageBase64": IMAGE})
        assert r.status_code == 200
        analysis = r.json()["analysis"]
        assert analysis["recommendedTVSize"] == '55"'
        assert analysis["potentialChallenges"] == ["Radiator below the wall"]

        path, payload = post.await_args.args
        assert path == "/chat/completions"
        image_url = payload["messages"][1]["content"][1]["image_url"]["url"]
        assert image_url == "data:image/jpeg;base64," + "A" * 200

    def test_unreadable_answer(self, client, monkeypatch):
        monkeypatch.setattr(
            "tradesbook.services.ai_preview._post",
            AsyncMock(return_value={"choices": [{"message": {"content": "not json"}}]}),
        )
        assert client.post("/api/ai/analyze-room", json={"imageBase64": IMAGE}).status_code == 502


class TestTvPlacement:
    def _request(self, **overrides):
        payload = {"imageBase64": IMAGE, "tvSize": 65, "mountType": "tilting", "wallType": "brick"}
        payload.update(overrides)
        return payload

    def test_preview(self, client, monkeypatch):
        post = AsyncMock(
            side_effect=[
                _chat({"wallLocation": "Chimney breast", "optimalHeight": "1.1m", "imagePrompt": "Cosy lounge."}),
                {"data": [{"url": "https://images.example/preview.png"}]},
            ]
        )
        monkeypatch.setattr("tradesbook.services.ai_preview._post", post)

        r = client.post("/api/ai/tv-placement", json=self._request())
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["imageUrl"] == "https://images.example/preview.png"
        assert "Chimney breast" in body["description"]

        prompt = post.await_args_list[1].args[1]["prompt"]
        assert '65" flat screen TV' in prompt
        assert "Cosy lounge." in prompt

    def test_image_failure_still_returns_analysis(self, client, monkeypatch):
        post = AsyncMock(side_effect=[_chat({"wallLocation": "Left wall"}), AIPreviewError("content policy")])
        monkeypatch.setattr("tradesbook.services.ai_preview._post", post)

        r = client.post("/api/ai/tv-placement", json=self._request())
        assert r.status_code == 200
        assert r.json()["success"] is False
        assert r.json()["analysis"] == {"wallLocation": "Left wall"}

    def test_analysis_failure(self, client, monkeypatch):
        monkeypatch.setattr(
            "tradesbook.services.ai_preview._post", AsyncMock(side_effect=AIPreviewError("timeout"))
        )
        assert client.post("/api/ai/tv-placement", json=self._request()).status_code == 502

    def test_validation(self, client):
        assert client.post("/api/ai/tv-placement", json=self._request(tvSize=10)).status_code == 422
        assert client.post("/api/ai/tv-placement", json=self._request(mountType="ceiling")).status_code == 422

    def test_rate_limited(self, client):
        statuses = [client.post("/api/ai/tv-placement", json=self._request()).status_code for _ in range(11)]
        assert statuses[:10] == [503] * 10
        assert statuses[10] == 429
