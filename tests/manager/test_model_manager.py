import pytest
import yaml
from pathlib import Path
from unittest.mock import AsyncMock, patch

from conftest import FakeProvider, structured
from src.models.manager import ModelManager, DEFAULT_CONFIG_PATH
from src.models.providers.base import ContentRequest, ImageRequest, MissingCredential, ModelError


class TestModelManager:
    """Test suite for ModelManager functionality"""

    @pytest.fixture
    def valid_config(self, tmp_path):
        """Create a valid config file for testing"""
        config_content = """
providers:
  gemini_main:
    type: gemini
    settings:
      api_key_env: TEST_GEMINI_KEY

  openrouter:
    type: openai
    settings:
      base_url: "https://openrouter.ai/api/v1"
      api_key_env: TEST_OPENROUTER_KEY

tasks:
  summarize:
    provider: gemini_main
    model: "gemini-2.5-flash"
    prompt: "summarize/text@v1"
    params:
      temperature: 0.2

  images:
    provider: gemini_main
    model: "imagen-4.0-generate-001"
    params:
      number_of_images: 1
      output_mime_type: "image/jpeg"
      aspect_ratio: "1:1"

  chat:
    provider: openrouter
    model: "some/model"
"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(config_content)
        return config_file

    @pytest.fixture
    def prompts_dir(self, tmp_path):
        """Create a prompts directory with one card"""
        prompts_dir = tmp_path / "prompts"
        card = prompts_dir / "summarize" / "text" / "v1"
        card.mkdir(parents=True)
        (card / "config.yaml").write_text("params:\n  temperature: 0.7\n  top_p: 0.9\n")
        (card / "system.j2").write_text("You summarize.")
        (card / "user.j2").write_text("Summarize: {{ text }}")
        return prompts_dir

    def test_initialization_success(self, valid_config, prompts_dir):
        """
        Test: Successful ModelManager initialization
        How: Create manager with valid config and prompts directory
        Ensures: Providers are not built until first use
        """
        manager = ModelManager(valid_config, prompts_dir)

        assert manager.config_path == Path(valid_config)
        assert manager.prompts is not None
        assert manager._providers == {}
        assert manager._stats == {}

    def test_shipped_config_loads(self):
        manager = ModelManager(DEFAULT_CONFIG_PATH)
        assert set(manager.config["tasks"]) == {
            "summarize_text", "summarize_audio", "describe_image", "web_search", "image_generation",
        }

    def test_config_file_not_found(self, tmp_path):
        nonexistent_config = tmp_path / "nonexistent.yaml"

        with pytest.raises(FileNotFoundError) as exc_info:
            ModelManager(nonexistent_config)

        assert "Config not found" in str(exc_info.value)

    def test_config_missing_providers_section(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("tasks:\n  t:\n    provider: p\n    model: m\n")

        with pytest.raises(ValueError) as exc_info:
            ModelManager(config_file)

        assert "Config missing 'providers'" in str(exc_info.value)

    def test_config_missing_tasks_section(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("providers:\n  p:\n    type: gemini\n")

        with pytest.raises(ValueError) as exc_info:
            ModelManager(config_file)

        assert "Config missing 'tasks'" in str(exc_info.value)

    def test_config_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("providers:\n  p:\n    type: gemini\n  invalid_yaml: [unclosed list\n")

        with pytest.raises(yaml.YAMLError):
            ModelManager(config_file)

    def test_unknown_provider_type(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("providers:\n  p:\n    type: anthropic\ntasks: {}\n")

        with pytest.raises(ValueError) as exc_info:
            ModelManager(config_file)

        assert "unknown type 'anthropic'" in str(exc_info.value)

    def test_task_missing_model(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("providers:\n  p:\n    type: gemini\ntasks:\n  t:\n    provider: p\n")

        with pytest.raises(ValueError) as exc_info:
            ModelManager(config_file)

        assert "Task 't' missing model" in str(exc_info.value)

    def test_task_unknown_provider(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("providers:\n  p:\n    type: gemini\ntasks:\n  t:\n    provider: q\n    model: m\n")

        with pytest.raises(ValueError) as exc_info:
            ModelManager(config_file)

        assert "unknown provider 'q'" in str(exc_info.value)

    def test_build_request_merges_prompt_and_task_params(self, valid_config, prompts_dir):
        """
        Test: Request construction from task + prompt card
        How: Build the 'summarize' request
        Ensures: Model comes from the task; task params override card params
        """
        manager = ModelManager(valid_config, prompts_dir)
        request = manager.build_request("summarize", {"text": "hello"})

        assert isinstance(request, ContentRequest)
        assert request.model == "gemini-2.5-flash"
        assert request.params == {"temperature": 0.2, "top_p": 0.9}
        assert request.messages == [
            {"role": "system", "content": "You summarize."},
            {"role": "user", "content": "Summarize: hello"},
        ]

    def test_build_request_without_prompt(self, valid_config, prompts_dir):
        manager = ModelManager(valid_config, prompts_dir)
        with pytest.raises(ValueError, match="no prompt configured"):
            manager.build_request("chat", {})

    def test_build_image_request(self, valid_config, prompts_dir):
        manager = ModelManager(valid_config, prompts_dir)
        request = manager.build_image_request("images", "a lighthouse")

        assert request == ImageRequest(
            model="imagen-4.0-generate-001", prompt="a lighthouse",
            number_of_images=1, output_mime_type="image/jpeg", aspect_ratio="1:1",
        )

    def test_unknown_task(self, valid_config, prompts_dir):
        manager = ModelManager(valid_config, prompts_dir)
        with pytest.raises(ValueError, match="Unknown task"):
            manager.task_config("nope")

    def test_providers_built_from_config_and_cached(self, valid_config, prompts_dir):
        with patch('src.models.manager.GeminiProvider') as gemini_cls, \
             patch('src.models.manager.OpenAIProvider') as openai_cls:
            manager = ModelManager(valid_config, prompts_dir)

            first = manager._get_provider("gemini_main")
            second = manager._get_provider("gemini_main")
            manager._get_provider("openrouter")

            assert first is second
            gemini_cls.assert_called_once_with(api_key_env="TEST_GEMINI_KEY")
            openai_cls.assert_called_once_with(base_url="https://openrouter.ai/api/v1", api_key_env="TEST_OPENROUTER_KEY")

    def test_validate_credentials_fails_fast(self, valid_config, prompts_dir, monkeypatch):
        """
        Test: Missing API key at startup
        How: Validate credentials with the key environment variables unset
        Ensures: MissingCredential is raised before any request is served
        """
        monkeypatch.delenv("TEST_GEMINI_KEY", raising=False)
        monkeypatch.delenv("TEST_OPENROUTER_KEY", raising=False)
        manager = ModelManager(valid_config, prompts_dir)

        with pytest.raises(MissingCredential):
            manager.validate_credentials()

    def test_generate_tracks_stats(self, valid_config, prompts_dir, run):
        fake = FakeProvider()
        fake.responses = [structured(), ModelError("bad request")]
        manager = ModelManager(valid_config, prompts_dir, providers={"gemini_main": fake})

        response = run(manager.generate("summarize", manager.build_request("summarize", {"text": "x"})))
        assert response.content == structured()

        with pytest.raises(ModelError):
            run(manager.generate("summarize", manager.build_request("summarize", {"text": "y"})))

        stats = manager.get_stats("summarize")
        assert stats["total_calls"] == 2
        assert stats["successful_calls"] == 1
        assert manager.get_stats("missing") == {}

    def test_health_reports_initialized_providers(self, valid_config, prompts_dir, run):
        manager = ModelManager(valid_config, prompts_dir, providers={"gemini_main": FakeProvider()})
        assert run(manager.health()) == {"gemini_main": True}

    def test_aclose_closes_every_provider(self, valid_config, prompts_dir, run):
        """
        Test: Shutdown closes provider HTTP clients
        How: Close a manager whose first provider fails to close
        Ensures: The remaining provider is still closed and the registry is emptied
        """
        failing, healthy = FakeProvider(), FakeProvider()
        failing.aclose = AsyncMock(side_effect=RuntimeError("already closed"))
        healthy.aclose = AsyncMock()
        manager = ModelManager(valid_config, prompts_dir, providers={"gemini_main": failing, "openrouter": healthy})

        run(manager.aclose())

        failing.aclose.assert_awaited_once()
        healthy.aclose.assert_awaited_once()
        assert manager._providers == {}
