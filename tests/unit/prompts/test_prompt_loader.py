"""Tests for PromptLoader."""

import pytest
from jinja2 import UndefinedError

from data_agent.prompts.loader import PromptLoader


@pytest.fixture
def loader():
    return PromptLoader()


class TestPackagedTemplates:
    def test_load_strips_front_matter(self, loader):
        content = loader.load("system/main.md")

        assert not content.startswith("---")
        assert "PostgreSQL" in content

    def test_metadata(self, loader):
        metadata = loader.get_metadata("agents/sql_generator.md")

        assert metadata["version"] == 1
        assert "question" in metadata["inputs"]

    def test_load_is_cached(self, loader):
        loader.load("system/main.md")

        assert "system/main.md:latest" in loader.cache

    def test_missing_prompt(self, loader):
        with pytest.raises(FileNotFoundError):
            loader.load("agents/missing.md")

    def test_render_missing_prompt(self, loader):
        with pytest.raises(FileNotFoundError):
            loader.render("agents/missing.md")

    def test_render_requires_variables(self, loader):
        with pytest.raises(UndefinedError):
            loader.render("agents/answer_composer.md", question="q")


class TestCustomDirectory:
    def test_render_from_directory(self, tmp_path):
        (tmp_path / "agents").mkdir()
        (tmp_path / "agents" / "hello.md").write_text(
            "---\nversion: 2\n---\nHello {{ name }}!\n"
        )
        loader = PromptLoader(tmp_path)

        assert loader.render("agents/hello.md", name="albm") == "Hello albm!"
        assert loader.get_metadata("agents/hello.md") == {"version": 2}

    def test_versioned_prompt(self, tmp_path):
        versioned = tmp_path / "versions" / "v1" / "agents"
        versioned.mkdir(parents=True)
        (versioned / "hello.md").write_text("Old {{ name }}")
        loader = PromptLoader(tmp_path)

        assert loader.render("agents/hello.md", version="v1", name="prompt") == "Old prompt"
