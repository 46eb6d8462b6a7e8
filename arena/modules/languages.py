"""
Supported languages and source preparation before execution.
"""

import re

from common.exceptions import ValidationError

# language -> source file extension
SUPPORTED_LANGUAGES: dict[str, str] = {
    "python": "py",
    "javascript": "js",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "go": "go",
}

# Languages with a compile stage that counts against the hard deadline
COMPILED_LANGUAGES = frozenset({"java", "cpp", "c", "go"})

_JAVA_PUBLIC_CLASS = re.compile(r"public class \w+")


def ensure_supported(language: str) -> str:
    """
    Validate and canonicalize a language name.

    Raises:
        ValidationError: If the language is not supported
    """
    canonical = (language or "").strip().lower()
    if canonical not in SUPPORTED_LANGUAGES:
        raise ValidationError(
            f"Unsupported language: {language}. Supported languages: "
            f"{', '.join(SUPPORTED_LANGUAGES)}"
        )
    return canonical


def file_name(language: str) -> str:
    """Entry file name the execution service expects."""
    if language == "java":
        return "Main.java"
    return f"main.{SUPPORTED_LANGUAGES[language]}"


def prepare_source(code: str, language: str) -> str:
    """
    Apply per-language fixups to user source.

    Python tabs become four spaces, C-family trailing whitespace is
    trimmed, and a Java public class is renamed to Main.
    """
    lines = code.split("\n")

    if language == "python":
        lines = [line.replace("\t", "    ").rstrip() for line in lines]
    elif language in ("c", "cpp"):
        lines = [line.rstrip() for line in lines]
    elif language == "java" and "class Main" not in code:
        lines = [
            _JAVA_PUBLIC_CLASS.sub("public class Main", line, count=1)
            for line in lines
        ]

    return "\n".join(lines)
