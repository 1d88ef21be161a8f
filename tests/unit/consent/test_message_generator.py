import pytest

from app.consent_service import message_generator
from app.consent_service.message_generator import ConsentMessageGenerator
from app.driver_service.schemas import DriverProfile

DRIVER = DriverProfile(
    driver_id="driver-verified",
    name="Sarah",
    rating=4.9,
    total_rides=150,
    verification_level="verified",
)


def test_uses_generated_text():
    generator = ConsentMessageGenerator(
        generate_text=lambda prompt: "  Hi! Sarah here, may I see your comfort settings?  "
    )

    message = generator.generate(DRIVER, "comfort")

    assert message == "Hi! Sarah here, may I see your comfort settings?"


def test_prompt_mentions_driver_and_category():
    prompts = []

    def capture(prompt):
        prompts.append(prompt)
        return "Sarah would like to adjust the ride to your liking."

    ConsentMessageGenerator(generate_text=capture).generate(DRIVER, "special_needs", "Ramp")

    assert "Sarah" in prompts[0]
    assert "4.9 stars" in prompts[0]
    assert "accessibility and special needs" in prompts[0]
    assert "Ramp" in prompts[0]


def test_falls_back_when_generation_fails():
    def broken(prompt):
        raise RuntimeError("Text generation unavailable")

    message = ConsentMessageGenerator(generate_text=broken).generate(
        DRIVER, "safety", "To share your trip status"
    )

    assert message.startswith("Sarah (4.9 stars, 150 rides) would like to see your safety preferences.")
    assert "To share your trip status." in message
    assert "revoke" in message


@pytest.mark.parametrize("reply", ["", "ok", None])
def test_falls_back_on_unusable_reply(reply):
    message = ConsentMessageGenerator(generate_text=lambda prompt: reply).generate(
        DRIVER, "music"
    )

    assert "would like to see your music preferences" in message


def test_gemini_unavailable_in_test_env():
    with pytest.raises(RuntimeError):
        message_generator.gemini_generate_text("hello")


def test_default_generator_falls_back_in_test_env():
    message = ConsentMessageGenerator().generate(DRIVER, "location_history")

    assert "location history" in message


def test_extract_text_from_candidate_parts():
    class Part:
        def __init__(self, text):
            self.text = text

    class Content:
        parts = [Part("Hello"), Part("there")]

    class Candidate:
        content = Content()

    class Response:
        text = None
        candidates = [Candidate()]

    assert message_generator._extract_text(Response()) == "Hello there"


def test_gemini_response_is_used(monkeypatch):
    class FakeResponse:
        text = "Sarah would love to know your preferred temperature."

    class FakeClient:
        class models:
            @staticmethod
            def generate_content(*args, **kwargs):
                return FakeResponse()

    class FakeConfig:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

    monkeypatch.setattr(
        message_generator,
        "_load_gemini",
        lambda: (FakeClient(), FakeConfig),
    )

    assert message_generator.gemini_generate_text("prompt") == FakeResponse.text
