"""Tests for prompt enhancement and white-background removal."""

import io

import pytest
from PIL import Image

from teegen.services.image_generation.background_removal import remove_white_background
from teegen.services.image_generation.prompt_enhancement import (
    MAX_PROMPT_LENGTH,
    build_avoidance_guidance,
    build_print_prompt,
    contains_text_request,
    needs_transparency,
    requests_solid_background,
    validate_prompt,
)

from conftest import make_png


class TestValidatePrompt:
    def test_strips_whitespace(self):
        assert validate_prompt("  a fox  ") == "a fox"

    @pytest.mark.parametrize("prompt", ["", "   ", "\n\t"])
    def test_empty_rejected(self, prompt):
        with pytest.raises(ValueError, match="empty"):
            validate_prompt(prompt)

    def test_length_boundary(self):
        assert validate_prompt("x" * MAX_PROMPT_LENGTH) == "x" * MAX_PROMPT_LENGTH

        with pytest.raises(ValueError, match="maximum length"):
            validate_prompt("x" * (MAX_PROMPT_LENGTH + 1))


class TestPromptClassification:
    @pytest.mark.parametrize(
        "prompt,expected",
        [
            ("a cat on a black background", True),
            ("logo on white background", True),
            ("background color: navy", True),
            ("a cat in space", False),
        ],
    )
    def test_solid_background(self, prompt, expected):
        assert requests_solid_background(prompt) is expected

    def test_text_request(self):
        assert contains_text_request('a mug saying "coffee first"')
        assert not contains_text_request("a mountain at dawn")

    def test_transparency(self):
        assert needs_transparency("isolated cactus")
        assert not needs_transparency("cactus in a desert")


class TestPrintPrompt:
    def test_default_requests_white_background(self):
        prompt = build_print_prompt("a retro robot")

        assert "Design concept: a retro robot" in prompt
        assert "pure solid white background (#FFFFFF)" in prompt
        assert "legible" not in prompt

    def test_user_background_respected(self):
        prompt = build_print_prompt("a robot on a black background")

        assert "solid background as specified" in prompt
        assert "#FFFFFF" not in prompt

    def test_avoidance_guidance(self):
        default = build_avoidance_guidance("a retro robot")
        with_text = build_avoidance_guidance('robot saying "beep"')

        assert default.startswith("Avoid: ")
        assert "text, words, or lettering" in default
        assert "checkered patterns" in default
        assert "text, words, or lettering" not in with_text


class TestRemoveWhiteBackground:
    def _alpha(self, png: bytes, xy: tuple[int, int]) -> int:
        image = Image.open(io.BytesIO(png))
        assert image.mode == "RGBA"
        return image.getpixel(xy)[3]

    def test_white_pixels_become_transparent(self):
        result = remove_white_background(make_png(size=(32, 40)))

        assert self._alpha(result, (0, 0)) == 0
        assert self._alpha(result, (16, 20)) == 255

    def test_edges_are_feathered(self):
        result = remove_white_background(make_png(size=(32, 40)))

        # (8, 10) is the top-left pixel of the colored square
        assert self._alpha(result, (8, 10)) == 192

    def test_no_feathering_keeps_edges_opaque(self):
        result = remove_white_background(make_png(size=(32, 40)), feather_edges=False)

        assert self._alpha(result, (8, 10)) == 255

    def test_threshold_controls_whiteness(self):
        near_white = make_png(size=(16, 16), color=(245, 245, 245))

        strict = remove_white_background(near_white, threshold=250, feather_edges=False)
        loose = remove_white_background(near_white, threshold=240, feather_edges=False)

        assert self._alpha(strict, (8, 8)) == 255
        assert self._alpha(loose, (8, 8)) == 0

    def test_unreadable_bytes_raise_value_error(self):
        with pytest.raises(ValueError, match="Unreadable image"):
            remove_white_background(b"not an image")
