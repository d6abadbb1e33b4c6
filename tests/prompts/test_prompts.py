# tests/test_prompts.py

import pytest
from pathlib import Path

from src.models.prompts import PromptManager, PromptConfig

SHIPPED_PROMPTS = Path(__file__).parents[2] / "prompts"


@pytest.fixture
def temp_prompts_dir(tmp_path):
    """Create a temporary prompts directory with test data"""
    summarize_v1 = tmp_path / "summarize" / "text" / "v1"
    summarize_v1.mkdir(parents=True)

    (summarize_v1 / "config.yaml").write_text("""
description: Summarize text
params:
  temperature: 0.3
""")
    (summarize_v1 / "system.j2").write_text("You summarize documents.")
    (summarize_v1 / "user.j2").write_text("""Text: {{ text }}
{% if prompt_count is defined %}
Prompts: {{ prompt_count }}
{% endif %}""")

    # Prompt without config file and with an empty system template
    describe_v1 = tmp_path / "describe" / "image" / "v1"
    describe_v1.mkdir(parents=True)
    (describe_v1 / "system.j2").write_text("")
    (describe_v1 / "user.j2").write_text("Describe this image.")

    # Prompt missing its user template
    broken_v1 = tmp_path / "broken" / "card" / "v1"
    broken_v1.mkdir(parents=True)
    (broken_v1 / "system.j2").write_text("System only.")

    return tmp_path


@pytest.fixture
def manager(temp_prompts_dir):
    """Create a PromptManager with test data"""
    return PromptManager(temp_prompts_dir)


# ============ Prompt Loading Tests ============

class TestPromptLoading:
    def test_load_valid_prompt_with_config(self, manager):
        config = manager.load_prompt("summarize/text@v1")

        assert config.name == "summarize/text"
        assert config.version == "v1"
        assert config.ref == "summarize/text@v1"
        assert config.description == "Summarize text"
        assert config.params == {"temperature": 0.3}

    def test_load_prompt_without_config(self, manager):
        config = manager.load_prompt("describe/image@v1")

        assert config.description is None
        assert config.params == {}

    def test_prompt_is_cached(self, manager):
        first = manager.load_prompt("summarize/text@v1")
        assert manager.load_prompt("summarize/text@v1") is first

        manager.clear_cache()
        assert manager.load_prompt("summarize/text@v1") is not first

    def test_invalid_reference(self, manager):
        with pytest.raises(ValueError, match="Invalid prompt reference"):
            manager.load_prompt("summarize/text")

    def test_missing_version(self, manager):
        with pytest.raises(FileNotFoundError, match="Prompt not found"):
            manager.load_prompt("summarize/text@v9")

    def test_missing_template(self, manager):
        with pytest.raises(FileNotFoundError, match="user.j2"):
            manager.load_prompt("broken/card@v1")

    def test_missing_prompts_dir(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PromptManager(tmp_path / "nope")

    def test_prompt_config_is_frozen(self, manager):
        config = manager.load_prompt("summarize/text@v1")
        with pytest.raises(Exception):
            config.version = "v2"


# ============ Rendering Tests ============

class TestPromptRendering:
    def test_render_system_and_user(self, manager):
        messages = manager.render("summarize/text@v1", {"text": "hello", "prompt_count": 3})

        assert messages[0] == {"role": "system", "content": "You summarize documents."}
        assert messages[1]["role"] == "user"
        assert "Text: hello" in messages[1]["content"]
        assert "Prompts: 3" in messages[1]["content"]

    def test_optional_variable_may_be_omitted(self, manager):
        messages = manager.render("summarize/text@v1", {"text": "hello"})
        assert "Prompts" not in messages[1]["content"]

    def test_blank_system_prompt_is_omitted(self, manager):
        """
        Test: Card with an empty system template
        How: Render the describe card
        Ensures: Only the user message is produced
        """
        messages = manager.render("describe/image@v1", {})
        assert messages == [{"role": "user", "content": "Describe this image."}]

    def test_missing_required_variable(self, manager):
        with pytest.raises(ValueError, match="Missing required variable"):
            manager.render("summarize/text@v1", {})


# ============ Shipped Cards ============

class TestShippedPrompts:
    @pytest.fixture
    def shipped(self):
        return PromptManager(SHIPPED_PROMPTS)

    @pytest.mark.parametrize("ref,variables", [
        ("summarize/text@v1", {"text": "doc", "prompt_count": 3}),
        ("summarize/audio@v1", {"prompt_count": 3}),
        ("describe/image@v1", {}),
        ("search/web@v1", {"query": "weather in Oslo"}),
    ])
    def test_cards_render(self, shipped, ref, variables):
        config = shipped.load_prompt(ref)
        assert isinstance(config, PromptConfig)
        assert config.description

        messages = shipped.render(ref, variables)
        assert messages[-1]["role"] == "user"
        assert messages[-1]["content"].strip()

    def test_structured_cards_name_wire_keys(self, shipped):
        for ref, variables in [("summarize/text@v1", {"text": "x", "prompt_count": 3}), ("summarize/audio@v1", {"prompt_count": 3})]:
            user = shipped.render(ref, variables)[-1]["content"]
            assert "'summary'" in user and "'imagePrompts'" in user
            assert "3 distinct" in user
