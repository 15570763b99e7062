"""Tests for outfit recommendations."""

import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from kasifesyen.api.dependencies import get_fashion_workflow
from kasifesyen.errors import ExtractionFailure, InvalidInput
from kasifesyen.main import app
from kasifesyen.schemas.fashion import Gender
from kasifesyen.services.fashion_service import FashionRequest, FashionWorkflow, parse_fashion_result


def fashion_response(outfit_count: int = 3, with_prompts: bool = True) -> str:
    outfits = []
    for index in range(outfit_count):
        outfit = {
            "name": f"Outfit {index + 1}",
            "pieces": ["white sneakers", "denim jacket"],
            "occasions": ["weekend"],
            "reasoning": "Balances the bold print.",
        }
        if with_prompts:
            outfit["outfitPrompt"] = f"outfit {index + 1} prompt"
        outfits.append(outfit)
    return "```json\n" + json.dumps(
        {
            "itemType": "shirt",
            "itemDescription": {
                "color": "navy",
                "pattern": "floral",
                "material": "cotton",
                "style": "casual",
            },
            "outfits": outfits,
            "stylingTips": ["Roll the sleeves."],
        }
    ) + "\n```"


def fake_clock(*readings: float) -> MagicMock:
    return MagicMock(side_effect=list(readings))


class TestParseFashionResult:
    def test_valid_response(self):
        result = parse_fashion_result(fashion_response())

        assert result.item_type == "shirt"
        assert result.item_description.pattern == "floral"
        assert len(result.outfits) == 3
        assert result.outfits[0].outfit_prompt == "outfit 1 prompt"
        assert result.outfits[0].generated_image is None

    @pytest.mark.parametrize("key", ["itemType", "outfits", "stylingTips", "itemDescription"])
    def test_missing_required_key(self, key):
        payload = json.loads(fashion_response().strip("`").removeprefix("json"))
        del payload[key]

        with pytest.raises(ExtractionFailure, match="Invalid JSON structure"):
            parse_fashion_result(json.dumps(payload))

    def test_empty_outfits(self):
        payload = json.loads(fashion_response().strip("`").removeprefix("json"))
        payload["outfits"] = []

        with pytest.raises(ExtractionFailure):
            parse_fashion_result(json.dumps(payload))

    def test_wrong_types(self):
        payload = json.loads(fashion_response().strip("`").removeprefix("json"))
        payload["outfits"] = "three outfits"

        with pytest.raises(ExtractionFailure):
            parse_fashion_result(json.dumps(payload))

    def test_not_json(self):
        with pytest.raises(ExtractionFailure):
            parse_fashion_result("Sorry, I can't help with that.")


class TestFashionWorkflow:
    @pytest.mark.asyncio
    async def test_requires_image_or_prompt(self, mock_gemini, settings):
        workflow = FashionWorkflow(mock_gemini, settings)

        with pytest.raises(InvalidInput):
            await workflow.recommend(FashionRequest(prompt="   "))

        mock_gemini.generate_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_text_only_request(self, mock_gemini, settings):
        mock_gemini.generate_text.return_value = fashion_response()
        mock_gemini.generate_image.return_value = b"png-bytes"
        workflow = FashionWorkflow(mock_gemini, settings, clock=fake_clock(0.0, 1.0))

        result = await workflow.recommend(
            FashionRequest(prompt="navy floral shirt", gender=Gender.MALE, halal_mode=True)
        )

        prompt = mock_gemini.generate_text.call_args.args[0]
        assert "knee to above the navel" in prompt
        assert prompt.endswith("User's description: navy floral shirt")
        assert mock_gemini.generate_text.call_args.kwargs["image"] is None

        expected = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()
        assert [outfit.generated_image for outfit in result.outfits] == [expected] * 3
        assert mock_gemini.generate_image.await_count == 3

    @pytest.mark.asyncio
    async def test_image_request_sends_image_inline(self, mock_gemini, settings):
        mock_gemini.generate_text.return_value = fashion_response(outfit_count=1)
        workflow = FashionWorkflow(mock_gemini, settings, clock=fake_clock(0.0, 1.0))

        await workflow.recommend(FashionRequest(image=b"photo", image_mime_type="image/png"))

        kwargs = mock_gemini.generate_text.call_args.kwargs
        assert kwargs["image"] == b"photo"
        assert kwargs["mime_type"] == "image/png"
        assert "User's description" not in mock_gemini.generate_text.call_args.args[0]

    @pytest.mark.asyncio
    async def test_failed_outfit_gets_placeholder(self, mock_gemini, settings):
        mock_gemini.generate_text.return_value = fashion_response()
        mock_gemini.generate_image = AsyncMock(
            side_effect=[b"first", RuntimeError("quota exceeded"), b"third"]
        )
        workflow = FashionWorkflow(mock_gemini, settings, clock=fake_clock(0.0, 1.0))

        result = await workflow.recommend(FashionRequest(prompt="shirt"))

        images = [outfit.generated_image for outfit in result.outfits]
        assert images[0] == "data:image/png;base64," + base64.b64encode(b"first").decode()
        assert images[1] == "/images/outfit-placeholder.png"
        assert images[2] == "data:image/png;base64," + base64.b64encode(b"third").decode()

    @pytest.mark.asyncio
    async def test_missing_outfit_prompts_are_synthesized(self, mock_gemini, settings):
        mock_gemini.generate_text.return_value = fashion_response(outfit_count=1, with_prompts=False)
        workflow = FashionWorkflow(mock_gemini, settings, clock=fake_clock(0.0, 1.0))

        result = await workflow.recommend(FashionRequest(prompt="shirt"))

        outfit_prompt = result.outfits[0].outfit_prompt
        assert "white sneakers, denim jacket" in outfit_prompt
        assert "navy shirt with floral pattern" in outfit_prompt
        assert outfit_prompt in mock_gemini.generate_image.call_args.args[0]

    @pytest.mark.asyncio
    async def test_synthesis_skipped_past_budget(self, mock_gemini, settings):
        mock_gemini.generate_text.return_value = fashion_response()
        # budget is 60s * 0.5
        workflow = FashionWorkflow(mock_gemini, settings, clock=fake_clock(0.0, 31.0))

        result = await workflow.recommend(FashionRequest(prompt="shirt"))

        assert all(outfit.generated_image is None for outfit in result.outfits)
        assert all(outfit.outfit_prompt for outfit in result.outfits)
        mock_gemini.generate_image.assert_not_called()


class TestFashionEndpoint:
    def test_recommend(self, client, mock_gemini, settings):
        mock_gemini.generate_text.return_value = fashion_response()
        mock_gemini.generate_image.return_value = None
        app.dependency_overrides[get_fashion_workflow] = lambda: FashionWorkflow(mock_gemini, settings)

        response = client.post(
            "/api/fashion",
            data={"prompt": "navy floral shirt", "gender": "female", "halalMode": "true"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["itemType"] == "shirt"
        assert data["itemDescription"]["color"] == "navy"
        assert len(data["outfits"]) == 3
        assert data["outfits"][0]["outfitPrompt"] == "outfit 1 prompt"
        assert data["outfits"][0]["generatedImage"] == "/images/outfit-placeholder.png"
        assert data["stylingTips"] == ["Roll the sleeves."]
        assert "hijab" in mock_gemini.generate_text.call_args.args[0]

    def test_recommend_with_image(self, client, mock_gemini, settings):
        mock_gemini.generate_text.return_value = fashion_response(outfit_count=1)
        app.dependency_overrides[get_fashion_workflow] = lambda: FashionWorkflow(mock_gemini, settings)

        response = client.post(
            "/api/fashion",
            files={"image": ("shirt.png", b"png-bytes", "image/png")},
            data={"gender": "cat"},
        )

        assert response.status_code == 200
        kwargs = mock_gemini.generate_text.call_args.kwargs
        assert kwargs["image"] == b"png-bytes"
        assert kwargs["mime_type"] == "image/png"

    def test_missing_input(self, client, mock_gemini, settings):
        app.dependency_overrides[get_fashion_workflow] = lambda: FashionWorkflow(mock_gemini, settings)

        response = client.post("/api/fashion", data={"gender": "male"})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Please provide either an image or a text description",
            "status": 400,
        }

    def test_malformed_model_output(self, client, mock_gemini, settings):
        mock_gemini.generate_text.return_value = '{"itemType": "shirt"}'
        app.dependency_overrides[get_fashion_workflow] = lambda: FashionWorkflow(mock_gemini, settings)

        response = client.post("/api/fashion", data={"prompt": "shirt"})

        assert response.status_code == 500
        assert response.json() == {"error": "Invalid JSON structure from model", "status": 500}

    def test_unexpected_error(self, client):
        workflow = MagicMock()
        workflow.recommend = AsyncMock(side_effect=RuntimeError("connection reset"))
        app.dependency_overrides[get_fashion_workflow] = lambda: workflow

        response = client.post("/api/fashion", data={"prompt": "shirt"})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to process the request", "status": 500}

    def test_unknown_gender_uses_womens_guidelines(self, client, mock_gemini, settings):
        mock_gemini.generate_text.return_value = fashion_response(outfit_count=1)
        app.dependency_overrides[get_fashion_workflow] = lambda: FashionWorkflow(mock_gemini, settings)

        response = client.post("/api/fashion", data={"prompt": "shirt", "gender": "dog"})

        assert response.status_code == 200
        prompt = mock_gemini.generate_text.call_args.args[0]
        assert "specializing in female's fashion" in prompt
        assert "suitable for women." in prompt

    def test_gemini_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(app.state, "gemini", None)

        response = client.post("/api/fashion", data={"prompt": "shirt"})

        assert response.status_code == 503
        assert response.json() == {"error": "Gemini API not configured", "status": 503}
