import logging

import pytest

from app.models.slides import ModelProvider, SlideRequest
from app.services.slides.orchestrator import SlideDeckService, parse_summary
from app.services.vision.common import ProviderErrorKind
from conftest import (
    PNG_DATA_URL,
    explain_error,
    make_service,
    ok,
    summarise_error,
)

OPENAI = ModelProvider.OPENAI
GEMINI = ModelProvider.GEMINI
ANTHROPIC = ModelProvider.ANTHROPIC


def build_deck(**services):
    defaults = {
        OPENAI: make_service(OPENAI),
        GEMINI: make_service(GEMINI),
        ANTHROPIC: make_service(ANTHROPIC),
    }
    defaults.update({ModelProvider(name): service for name, service in services.items()})
    return SlideDeckService(services=defaults)


@pytest.mark.unit
def test_parse_summary_extracts_title_and_content():
    title, content = parse_summary("# My Title\n- point one\n- point two")
    assert title == "My Title"
    assert content == "- point one\n- point two"


@pytest.mark.unit
def test_parse_summary_without_heading():
    title, content = parse_summary("\n- point one\n- point two\n")
    assert title == "Untitled Slide"
    assert content == "- point one\n- point two"


@pytest.mark.unit
def test_parse_summary_removes_only_first_heading():
    title, content = parse_summary("Intro\n#Title\n- a\n# Second\n- b")
    assert title == "Title"
    assert content == "Intro\n\n- a\n# Second\n- b"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_slides_end_to_end():
    openai_service = make_service(
        OPENAI,
        explanations=[ok(OPENAI, "A red bicycle leaning against a brick wall.")],
        summaries=[
            ok(OPENAI, "# Red Bicycle\n- Leaning against brick\n- Suggests urban setting")
        ],
    )
    deck = build_deck(openai=openai_service)

    response = await deck.generate_slides(
        SlideRequest.from_payload({"images": [PNG_DATA_URL], "model": "openai"})
    )

    assert [slide.model_dump(by_alias=True) for slide in response.slides] == [
        {
            "title": "Red Bicycle",
            "content": "- Leaning against brick\n- Suggests urban setting",
            "fullExplanation": "A red bicycle leaning against a brick wall.",
            "originalMessage": "",
            "originalCaption": "",
        }
    ]
    image = openai_service.explain.await_args.args[0]
    assert image.media_type == "image/png"
    openai_service.summarise.assert_awaited_once_with(
        "A red bicycle leaning against a brick wall.", "", ""
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_explain_failure_only_affects_its_own_slide():
    claude = make_service(
        ANTHROPIC,
        explanations=[
            ok(ANTHROPIC, "first"),
            explain_error(ANTHROPIC, ProviderErrorKind.QUOTA_EXCEEDED),
            ok(ANTHROPIC, "third"),
        ],
        summaries=[ok(ANTHROPIC, "# One\n- a"), ok(ANTHROPIC, "# Three\n- c")],
    )
    deck = build_deck(anthropic=claude)

    response = await deck.generate_slides(
        SlideRequest.from_payload({"images": ["AAAA"] * 3, "model": "anthropic"})
    )

    titles = [slide.title for slide in response.slides]
    assert titles == ["One", "Error Processing Image", "Three"]
    assert response.slides[1].full_explanation.startswith("Error analyzing image with Claude")
    assert claude.summarise.await_count == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_summarise_failure_keeps_explanation():
    openai_service = make_service(
        OPENAI,
        explanations=[ok(OPENAI, "A detailed explanation")],
        summaries=[summarise_error(OPENAI)],
    )
    deck = build_deck(openai=openai_service)

    response = await deck.generate_slides(
        SlideRequest.from_payload(
            {"images": ["AAAA"], "messages": ["msg"], "captions": ["cap"]}
        )
    )

    slide = response.slides[0]
    assert slide.title == "Error Creating Slide"
    assert slide.full_explanation == "A detailed explanation"
    assert slide.original_message == "msg"
    assert slide.original_caption == "cap"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_gemini_explain_failure_falls_back_to_openai():
    gemini = make_service(GEMINI, explanations=[explain_error(GEMINI)])
    openai_service = make_service(
        OPENAI,
        explanations=[ok(OPENAI, "OpenAI explanation")],
        summaries=[ok(OPENAI, "# Fallback Title\n- point")],
    )
    deck = build_deck(gemini=gemini, openai=openai_service)

    response = await deck.generate_slides(
        SlideRequest.from_payload({"images": ["AAAA"], "model": "gemini"})
    )

    slide = response.slides[0]
    assert slide.title == "Fallback Title"
    assert slide.content == "- point"
    assert slide.full_explanation == "OpenAI explanation"
    gemini.summarise.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_gemini_fallback_failure_produces_error_slide():
    gemini = make_service(GEMINI, explanations=[explain_error(GEMINI)])
    openai_service = make_service(
        OPENAI, explanations=[explain_error(OPENAI, ProviderErrorKind.MISSING_KEY)]
    )
    deck = build_deck(gemini=gemini, openai=openai_service)

    response = await deck.generate_slides(
        SlideRequest.from_payload({"images": ["AAAA"], "model": "gemini"})
    )

    slide = response.slides[0]
    assert slide.title == "Error Processing Image"
    assert slide.full_explanation.startswith("Error analyzing image with OpenAI")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_gemini_summarise_failure_falls_back_to_openai_summary():
    gemini = make_service(
        GEMINI,
        explanations=[ok(GEMINI, "Gemini explanation")],
        summaries=[summarise_error(GEMINI)],
    )
    openai_service = make_service(
        OPENAI, summaries=[ok(OPENAI, "# OpenAI Summary\n- point")]
    )
    deck = build_deck(gemini=gemini, openai=openai_service)

    response = await deck.generate_slides(
        SlideRequest.from_payload({"images": ["AAAA"], "model": "gemini"})
    )

    slide = response.slides[0]
    assert slide.title == "OpenAI Summary"
    assert slide.full_explanation == "Gemini explanation"
    openai_service.explain.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_summary_fallback_logs_openai(caplog):
    gemini = make_service(
        GEMINI,
        explanations=[ok(GEMINI, "Gemini explanation")],
        summaries=[summarise_error(GEMINI)],
    )
    openai_service = make_service(OPENAI, summaries=[summarise_error(OPENAI)])
    deck = build_deck(gemini=gemini, openai=openai_service)

    with caplog.at_level(logging.ERROR, logger="app.services.slides.orchestrator"):
        response = await deck.generate_slides(
            SlideRequest.from_payload({"images": ["AAAA"], "model": "gemini"})
        )

    assert response.slides[0].title == "Error Creating Slide"
    errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert any(m.startswith("Error generating summary with OpenAI") for m in errors)
    assert not any(m.startswith("Error generating summary with Gemini") for m in errors)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_gemini_failures_do_not_fall_back():
    claude = make_service(ANTHROPIC, explanations=[explain_error(ANTHROPIC)])
    openai_service = make_service(OPENAI)
    deck = build_deck(anthropic=claude, openai=openai_service)

    response = await deck.generate_slides(
        SlideRequest.from_payload({"images": ["AAAA"], "model": "anthropic"})
    )

    assert response.slides[0].title == "Error Processing Image"
    openai_service.explain.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_malformed_image_becomes_error_slide():
    openai_service = make_service(
        OPENAI,
        explanations=[ok(OPENAI, "second image")],
        summaries=[ok(OPENAI, "# Second\n- b")],
    )
    deck = build_deck(openai=openai_service)

    response = await deck.generate_slides(
        SlideRequest.from_payload(
            {
                "images": ["data:image/png;base64,", PNG_DATA_URL],
                "messages": ["first message"],
            }
        )
    )

    assert len(response.slides) == 2
    assert response.slides[0].title == "Error Processing Image"
    assert response.slides[0].full_explanation == "Invalid data URL format"
    assert response.slides[0].original_message == "first message"
    assert response.slides[1].title == "Second"
    openai_service.explain.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unexpected_exception_is_contained():
    openai_service = make_service(
        OPENAI,
        explanations=[RuntimeError("adapter crashed"), ok(OPENAI, "fine")],
        summaries=[ok(OPENAI, "# Fine\n- ok")],
    )
    deck = build_deck(openai=openai_service)

    response = await deck.generate_slides(
        SlideRequest.from_payload({"images": ["AAAA", "AAAA"]})
    )

    assert [slide.title for slide in response.slides] == ["Error Processing Image", "Fine"]
    assert response.slides[0].full_explanation == "adapter crashed"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_processing_preserves_input_order():
    explanations = {f"img{i}": ok(OPENAI, f"explanation {i}") for i in range(5)}

    openai_service = make_service(OPENAI)

    async def explain(image):
        return explanations[image.data]

    async def summarise(explanation, message, caption):
        return ok(OPENAI, f"# {explanation}\n- {message}")

    openai_service.explain.side_effect = explain
    openai_service.summarise.side_effect = summarise

    deck = build_deck(openai=openai_service)
    deck.max_concurrency = 3

    # "img0".."img4" are each four valid base64 characters
    images = [f"img{i}" for i in range(5)]
    response = await deck.generate_slides(
        SlideRequest.from_payload(
            {"images": images, "messages": [f"m{i}" for i in range(5)]}
        )
    )

    assert [slide.title for slide in response.slides] == [
        f"explanation {i}" for i in range(5)
    ]
    assert [slide.original_message for slide in response.slides] == [
        f"m{i}" for i in range(5)
    ]
