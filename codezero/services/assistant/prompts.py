"""
Prompt builders for the assistant flows.
"""

from __future__ import annotations

LANGUAGE_LABELS = {
    "python": "Python",
    "java": "Java",
    "cpp": "C++",
    "c": "C",
}

RUN_SYSTEM_PROMPT = (
    "You are a program execution simulator. Given source code, predict exactly what the "
    "program prints to stdout and stderr when compiled and run, including compiler errors "
    "and runtime exceptions. Reply with the raw program output only: no explanations, no "
    "markdown. If the program reads input that has not been provided, print everything up "
    "to and including the input prompt and stop there."
)

ASSIST_SYSTEM_PROMPT = (
    "You are an expert AI coding assistant. Decide whether the user asks a question about "
    "their code or requests a modification. Reply with a single JSON object and nothing else:\n"
    '- for a question: {"responseType": "answer", "answer": "<clear, concise explanation>"}\n'
    '- for a modification: {"responseType": "code", "code": "<the complete updated code>"}\n'
    "Modified code must be complete, correctly indented and ready to paste into an editor, "
    "without commentary."
)

NAME_SYSTEM_PROMPT = (
    "You are an expert code analyst. Give the snippet a short, descriptive name of three to "
    "five words that summarises its purpose, e.g. \"Palindrome Number Checker\". Reply with "
    "the name only, without markdown or quotes."
)


def language_label(language: str) -> str:
    return LANGUAGE_LABELS.get(language, language)


def _code_block(code: str) -> str:
    return f"'''\n{code}\n'''"


def build_run_prompt(
    code: str,
    language: str,
    stdin: str | None = None,
    prior_conversation: str | None = None,
) -> str:
    lines = [f"Language: {language_label(language)}", "", "Code:", _code_block(code)]
    if prior_conversation and prior_conversation.strip():
        lines += [
            "",
            "The program has already produced this session (output and the user's input so far):",
            _code_block(prior_conversation.strip("\n")),
            "Continue the same run from where it stopped; do not repeat earlier output.",
        ]
    if stdin:
        lines += ["", "Standard input:", _code_block(stdin.rstrip("\n"))]
    return "\n".join(lines)


def build_assist_prompt(code: str, language: str, request: str) -> str:
    return "\n".join(
        [
            f"Language: {language_label(language)}",
            "",
            f"User's Request: {request.strip()}",
            "",
            "Current Code:",
            _code_block(code),
        ]
    )


def build_name_prompt(code: str, language: str) -> str:
    return "\n".join([f"Language: {language_label(language)}", "", "Code:", _code_block(code)])


__all__ = [
    "ASSIST_SYSTEM_PROMPT",
    "NAME_SYSTEM_PROMPT",
    "RUN_SYSTEM_PROMPT",
    "build_assist_prompt",
    "build_name_prompt",
    "build_run_prompt",
    "language_label",
]
