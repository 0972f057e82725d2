"""Unit tests for template filling and prompt construction."""

from storybuilder.models import ProjectSettings, RunRequest
from storybuilder.prompts import (
    DEFAULT_STORY_TEMPLATE,
    JSON_INSTRUCTION,
    TEMPLATE_PLACEHOLDERS,
    build_repair_messages,
    build_story_messages,
    build_system_prompt,
    build_template_inputs,
    fill_prompt_template,
)


class TestFillPromptTemplate:
    """Tests for fill_prompt_template function."""

    def test_spaced_placeholder(self):
        """Whitespace inside the braces is allowed."""
        assert fill_prompt_template("Hello {{ name }}!", {"name": "World"}) == "Hello World!"

    def test_missing_value_renders_none(self):
        """Unknown placeholders render [none] by default."""
        assert fill_prompt_template("{{missing}}", {}) == "[none]"

    def test_empty_value_renders_none(self):
        """Empty strings and None both render [none]."""
        template = "{{a}} / {{b}}"

        assert fill_prompt_template(template, {"a": "", "b": None}) == "[none] / [none]"

    def test_keep_unknown_leaves_placeholder(self):
        """With keep_unknown, names not in inputs are left as written."""
        result = fill_prompt_template("{{ known }} {{ other }}", {"known": "x"}, keep_unknown=True)

        assert result == "x {{ other }}"

    def test_names_match_literally(self):
        """Regex-special characters in names are not interpreted."""
        result = fill_prompt_template("{{a.b}} {{axb}}", {"a.b": "dot"}, keep_unknown=True)

        assert result == "dot {{axb}}"

    def test_repeated_placeholder(self):
        """Every occurrence is replaced."""
        assert fill_prompt_template("{{x}}{{ x }}{{x }}", {"x": "1"}) == "111"


class TestTemplateInputs:
    """Tests for build_template_inputs function."""

    def test_all_placeholders_present(self):
        """Every recognised placeholder gets a value."""
        inputs = build_template_inputs(RunRequest(raw_input="Build a login page"))

        assert set(inputs) == set(TEMPLATE_PLACEHOLDERS)
        assert inputs["raw_input"] == "Build a login page"
        assert inputs["persona"] == "[none]"

    def test_camel_case_settings(self):
        """UI-style camelCase keys are accepted."""
        settings = ProjectSettings(**{
            "projectName": "Shop",
            "projectDescription": "Online store",
            "customPrompt": "Be brief",
        })

        inputs = build_template_inputs(RunRequest(raw_input="x", project_settings=settings))

        assert inputs["project_name"] == "Shop"
        assert inputs["project_description"] == "Online store"
        assert inputs["custom_prompt"] == "Be brief"

    def test_request_custom_prompt_overrides_settings(self):
        """RunRequest.custom_prompt wins over the settings value."""
        request = RunRequest(
            raw_input="x",
            project_settings=ProjectSettings(custom_prompt="from settings"),
            custom_prompt="from request",
        )

        assert build_template_inputs(request)["custom_prompt"] == "from request"

    def test_project_context_fallback_order(self):
        """technicalContext, then project_context, then additionalContext."""
        settings = ProjectSettings(**{"additionalContext": "extra", "project_context": "ctx"})
        assert build_template_inputs(RunRequest(project_settings=settings))["project_context"] == "ctx"

        settings = ProjectSettings(**{"additionalContext": "extra"})
        assert build_template_inputs(RunRequest(project_settings=settings))["project_context"] == "extra"

        settings = ProjectSettings(**{"technicalContext": "tech", "additionalContext": "extra"})
        assert build_template_inputs(RunRequest(project_settings=settings))["project_context"] == "tech"

    def test_file_content_truncated(self):
        """Long file content is cut to the text limit."""
        settings = ProjectSettings(file_content="x" * 500)

        inputs = build_template_inputs(RunRequest(project_settings=settings), max_text_length=100)

        assert len(inputs["file_content"]) == 100

    def test_html_file_content_converted(self):
        """HTML uploads reach the prompt as Markdown text."""
        html = "<h1>Checkout</h1><p>Customers pay <b>by card</b>.</p><script>alert(1)</script>"
        settings = ProjectSettings(fileContent=html)

        file_text = build_template_inputs(RunRequest(project_settings=settings))["file_content"]

        assert "Checkout" in file_text
        assert "<p>" not in file_text
        assert "alert" not in file_text


class TestStoryMessages:
    """Tests for system prompt and message construction."""

    def test_system_prompt_ends_with_json_instruction(self):
        """The JSON-only instruction is always appended."""
        prompt = build_system_prompt("Project: {{project_name}}", {"project_name": "Shop"})

        assert prompt.startswith("Project: Shop")
        assert prompt.endswith(JSON_INSTRUCTION)

    def test_unrecognised_placeholder_left_unfilled(self):
        """Names outside the recognised set stay in the system prompt."""
        prompt = build_system_prompt("{{project_name}} {{ sprint }}", {"project_name": "Shop"})

        assert "Shop {{ sprint }}" in prompt

    def test_user_message_is_trimmed_input(self):
        """User message is the trimmed raw input."""
        messages = build_story_messages(DEFAULT_STORY_TEMPLATE, {}, "  Export to CSV \n")

        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[1]["content"] == "Export to CSV"

    def test_empty_input_placeholder(self):
        """Blank input is sent as [empty input]."""
        messages = build_story_messages(DEFAULT_STORY_TEMPLATE, {}, "   ")

        assert messages[1]["content"] == "[empty input]"


class TestRepairMessages:
    """Tests for build_repair_messages function."""

    def test_asks_for_five_criteria(self):
        """Repair prompt carries title, description and the count."""
        messages = build_repair_messages("Export report", "As a manager, I want exports")

        assert messages[0]["role"] == "system"
        assert "Title: Export report" in messages[1]["content"]
        assert "exactly 5" in messages[1]["content"]
