"""Tests for duplex.prompts — Prompt template loading and rendering."""

import pytest

from duplex.prompts import render_prompt

_CHARACTER = {"name": "Mara Voss", "role": "protagonist", "age": "35-45"}


class TestRenderPrompt:
    def test_renders_casting_template(self):
        result = render_prompt("casting", character=_CHARACTER, max_recommendations=3)
        assert "Mara Voss" in result
        assert "protagonist" in result
        assert "at most 3 actors" in result

    def test_optional_fields_omitted_gracefully(self):
        result = render_prompt("casting", character=_CHARACTER, max_recommendations=5)
        assert "Project context" not in result
        assert "Gender:" not in result
        assert "diverse shortlist" not in result

    def test_optional_fields_rendered_when_provided(self):
        character = {**_CHARACTER, "gender": "female", "personality_traits": ["guarded", "loyal"]}
        result = render_prompt(
            "casting",
            character=character,
            project_context="Maritime thriller",
            prioritize_diversity=True,
            region="Nordic countries",
            max_recommendations=5,
        )
        assert "## Project context\nMaritime thriller" in result
        assert "- Gender: female" in result
        assert "guarded, loyal" in result
        assert "diverse shortlist" in result
        assert "Nordic countries" in result

    def test_output_format_is_json(self):
        result = render_prompt("casting", character=_CHARACTER, max_recommendations=5)
        assert '"items"' in result
        assert '"overall"' in result

    def test_missing_template_raises(self):
        with pytest.raises(FileNotFoundError, match="nonexistent"):
            render_prompt("nonexistent")
