import pytest

from codezero.services.assistant import Assistant, AssistantError, looks_like_input_prompt, starter_code
from codezero.services.assistant.flows import UNTITLED_NAME, strip_code_fence
from codezero.services.assistant.prompts import RUN_SYSTEM_PROMPT, build_run_prompt

from helpers import FakeClaude


@pytest.mark.parametrize(
    "output,expected",
    [
        ("Enter a number:", True),
        ("Hello\nPlease INPUT your age", True),
        ("Enter a number: \n\n", True),
        ("Entered values: 3", False),
        ("Hello, world!", False),
        ("", False),
    ],
)
def test_input_prompt_heuristic(output, expected):
    assert looks_like_input_prompt(output) is expected


def test_simulate_run_uses_detector_and_strips_fence():
    claude = FakeClaude("```\nSum: 5\n```")
    assistant = Assistant(claude, input_detector=lambda output: output.startswith("Sum"))

    result = assistant.simulate_run("print(2 + 3)", "python")

    assert result.output == "Sum: 5"
    assert result.awaiting_input is True
    assert claude.calls[0]["system"] == RUN_SYSTEM_PROMPT


def test_run_prompt_continues_a_session():
    prompt = build_run_prompt(
        "n = int(input('Enter n: '))\nprint(n * 2)",
        "python",
        stdin="21\n",
        prior_conversation="Enter n: 21\n",
    )

    assert prompt.startswith("Language: Python")
    assert "Enter n: 21" in prompt
    assert "Continue the same run" in prompt
    assert prompt.rstrip().endswith("21\n'''")


def test_assist_code_reply_is_unfenced():
    claude = FakeClaude(
        'Here you go: {"responseType": "code", "code": "```python\\nprint(\'hi\')\\n```"}'
    )

    response = Assistant(claude).assist_with_code("print('hello')", "python", "say hi instead")

    assert response.responseType == "code"
    assert response.code == "print('hi')"
    assert response.answer is None
    assert "User's Request: say hi instead" in claude.calls[0]["user_text"]


@pytest.mark.parametrize(
    "reply",
    [
        "no json here",
        '{"responseType": "code"}',
        '{"responseType": "poem", "answer": "roses"}',
        "{not json}",
    ],
)
def test_assist_rejects_unusable_replies(reply):
    with pytest.raises(AssistantError):
        Assistant(FakeClaude(reply)).assist_with_code("x = 1", "python", "explain")


def test_name_is_cleaned_and_capped():
    claude = FakeClaude('"Binary Search Tree Insertion And Traversal Demo"\nExtra line')

    response = Assistant(claude).name_code("class Node: ...", "python")

    assert response.name == "Binary Search Tree Insertion And"


def test_blank_code_is_untitled_without_asking():
    claude = FakeClaude()

    assert Assistant(claude).name_code("   \n", "c").name == UNTITLED_NAME
    assert claude.calls == []


def test_empty_name_reply_falls_back():
    assert Assistant(FakeClaude("``")).name_code("int x;", "c").name == UNTITLED_NAME


def test_strip_code_fence_leaves_plain_text():
    assert strip_code_fence("plain output\n") == "plain output"
    assert strip_code_fence("```cpp\nint main() {}\n```") == "int main() {}"


def test_starter_code_lookup():
    python = starter_code(" Python ")

    assert python["filename"] == "codezero-code.py"
    assert python["code"].startswith("def main():")
    assert not python["code"].endswith("\n")
    assert starter_code("rust") is None
