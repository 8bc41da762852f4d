from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from deepbrief.services.prompt_store import clear_prompt_cache, has_prompt, render_prompt


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt(
        "structuring.request",
        schema_instructions="SCHEMA",
        research="RESEARCH BODY",
    )
    assert prompt.startswith("SCHEMA")
    assert prompt.rstrip().endswith("RESEARCH BODY")


def test_render_prompt_joins_line_lists():
    prompt = render_prompt("research.lite.task")
    assert prompt.startswith("## Task\n")


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing.prompt.key")


def test_render_prompt_reports_missing_value():
    with pytest.raises(KeyError, match="research"):
        render_prompt("structuring.request", schema_instructions="SCHEMA")


def test_has_prompt():
    assert has_prompt("research.lite.instructions")
    assert not has_prompt("research.strategy.instructions")
    assert not has_prompt("research")


def test_custom_catalog_path(tmp_path):
    catalog = tmp_path / "prompts.json"
    catalog.write_text(json.dumps({"greeting": "Hello ${name}"}), encoding="utf-8")

    with patch("deepbrief.services.prompt_store.settings") as mock_settings:
        mock_settings.prompts_path = str(catalog)
        clear_prompt_cache()
        try:
            assert render_prompt("greeting", name="team") == "Hello team"
        finally:
            clear_prompt_cache()
