"""Supported languages, their starter programs, and main file names."""

from __future__ import annotations

from pathlib import Path

from execterm.domain.models import Language

TEMPLATES: dict[Language, str] = {
    Language.PYTHON: 'print("Hello, Python!")\n',
    Language.JAVASCRIPT: 'console.log("Hello, JavaScript!");\n',
    Language.CPP: (
        "#include<iostream>\n"
        "using namespace std;\n"
        "\n"
        "int main() {\n"
        '    cout << "Hello, C++!" << endl;\n'
        "    return 0;\n"
        "}\n"
    ),
}

FILE_EXTENSIONS: dict[Language, str] = {
    Language.PYTHON: "py",
    Language.JAVASCRIPT: "js",
    Language.CPP: "cpp",
}

SUFFIX_MAP: dict[str, Language] = {
    ".py": Language.PYTHON,
    ".js": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cpp": Language.CPP,
    ".cc": Language.CPP,
    ".cxx": Language.CPP,
}


def template_for(language: Language | str) -> str:
    """Starter program shown when a language is selected."""
    return TEMPLATES[Language(language)]


def main_file_name(language: Language | str) -> str:
    """Name of the single source file the backend runs, e.g. 'main.py'."""
    return f"main.{FILE_EXTENSIONS[Language(language)]}"


def detect_language(path: Path | str) -> Language:
    """Infer the language of a source file from its suffix.

    Raises:
        ValueError: If the suffix belongs to no supported language.
    """
    suffix = Path(path).suffix.lower()
    try:
        return SUFFIX_MAP[suffix]
    except KeyError:
        raise ValueError(f"Cannot infer language from {suffix or 'a missing'} suffix") from None
