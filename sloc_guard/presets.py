"""Built-in configuration presets referenced as `extends = "preset:<name>"`."""

from __future__ import annotations

import tomllib
from typing import Any

from sloc_guard.errors import ConfigError

PRESET_PREFIX = "preset:"

_TEST_FILE_REASON = "Test files need more space for fixtures and assertions"
_TEST_DIR_REASON = "Test directories often have more files"

_RUST_STRICT = f"""
version = "2"

[scanner]
exclude = [".git/**", "target/**", "vendor/**", "**/*.generated.rs", "benches/**"]

[content]
extensions = ["rs"]
max_lines = 600
warn_threshold = 0.85
skip_comments = true
skip_blank = true

[[content.rules]]
pattern = "**/*_test.rs"
max_lines = 1000
reason = "{_TEST_FILE_REASON}"

[[content.rules]]
pattern = "**/*_tests.rs"
max_lines = 1000
reason = "{_TEST_FILE_REASON}"

[[content.rules]]
pattern = "**/tests/**/*.rs"
max_lines = 1000
reason = "Integration test files need more space"

[[content.rules]]
pattern = "**/benches/**/*.rs"
max_lines = 1500
reason = "Benchmark files may contain large datasets"

[[content.rules]]
pattern = "**/examples/**/*.rs"
max_lines = 800
reason = "Example files may be more verbose for clarity"

[structure]
max_files = 20
max_dirs = 10
warn_threshold = 0.9
deny_files = ["*.bak", "*.tmp", ".DS_Store", "Thumbs.db"]
deny_extensions = [".exe", ".dll", ".so", ".dylib"]

[[structure.rules]]
scope = "tests/**"
max_files = 50
max_dirs = 15
reason = "{_TEST_DIR_REASON}"
"""

_NODE_STRICT = f"""
version = "2"

[scanner]
exclude = [
    ".git/**", "node_modules/**", "dist/**", "build/**", ".next/**",
    "coverage/**", ".nuxt/**", ".output/**", ".cache/**", ".parcel-cache/**",
]

[content]
extensions = ["js", "jsx", "ts", "tsx", "mjs", "cjs", "vue", "svelte"]
max_lines = 600
warn_threshold = 0.85
skip_comments = true
skip_blank = true

[[content.rules]]
pattern = "**/*.{{test,spec}}.{{js,jsx,ts,tsx}}"
max_lines = 1000
reason = "{_TEST_FILE_REASON}"

[[content.rules]]
pattern = "**/{{__tests__,test}}/**/*.{{js,jsx,ts,tsx}}"
max_lines = 1000
reason = "{_TEST_FILE_REASON}"

[[content.rules]]
pattern = "**/*.stories.{{js,jsx,ts,tsx}}"
max_lines = 800
reason = "Storybook stories may include multiple variants"

[[content.rules]]
pattern = "**/e2e/**/*.{{js,ts}}"
max_lines = 800
reason = "E2E tests may have longer flows"

[structure]
max_files = 25
max_dirs = 15
warn_threshold = 0.9
deny_files = ["*.bak", "*.tmp", ".DS_Store", "Thumbs.db", "npm-debug.log*", "yarn-error.log"]
deny_extensions = [".exe", ".dll"]

[[structure.rules]]
scope = "{{__tests__,test,tests}}/**"
max_files = 50
max_dirs = 20
reason = "{_TEST_DIR_REASON}"

[[structure.rules]]
scope = "src/components/**"
max_files = 40
reason = "UI component directories may have many related files"
"""

_PYTHON_STRICT = f"""
version = "2"

[scanner]
exclude = [
    ".git/**", "**/__pycache__/**", ".venv/**", "venv/**", "env/**",
    ".tox/**", "*.egg-info/**", ".pytest_cache/**", ".mypy_cache/**",
    ".ruff_cache/**", "htmlcov/**", ".coverage", "dist/**", "build/**",
]

[content]
extensions = ["py", "pyi"]
max_lines = 600
warn_threshold = 0.85
skip_comments = true
skip_blank = true

[[content.rules]]
pattern = "**/{{test_*,*_test}}.py"
max_lines = 1000
reason = "{_TEST_FILE_REASON}"

[[content.rules]]
pattern = "**/tests/**/*.py"
max_lines = 1000
reason = "{_TEST_FILE_REASON}"

[[content.rules]]
pattern = "**/conftest.py"
max_lines = 800
reason = "Conftest files contain shared fixtures"

[[content.rules]]
pattern = "**/migrations/**/*.py"
max_lines = 1500
reason = "Database migrations may be auto-generated and verbose"

[structure]
max_files = 20
max_dirs = 10
warn_threshold = 0.9
deny_files = ["*.bak", "*.tmp", ".DS_Store", "Thumbs.db", "*.pyc"]
deny_extensions = [".exe", ".dll", ".so"]
deny_dirs = ["__pycache__"]

[[structure.rules]]
scope = "{{test,tests}}/**"
max_files = 50
max_dirs = 20
reason = "{_TEST_DIR_REASON}"
"""

_GO_STRICT = f"""
version = "2"

[scanner]
exclude = [".git/**", "vendor/**", "bin/**", "dist/**", "testdata/**", ".idea/**", ".vscode/**"]

[content]
extensions = ["go"]
max_lines = 600
warn_threshold = 0.85
skip_comments = true
skip_blank = true

[[content.rules]]
pattern = "**/*_test.go"
max_lines = 1000
reason = "Table-driven tests and fixtures need more space"

[[content.rules]]
pattern = "**/{{example,examples}}/**/*.go"
max_lines = 800
reason = "Example files may be more verbose for clarity"

[[content.rules]]
pattern = "**/cmd/**/*.go"
max_lines = 400
reason = "Command entry points should be concise"

[[content.rules]]
pattern = "**/internal/**/*.go"
max_lines = 700
reason = "Internal packages may contain more complex implementations"

[[content.rules]]
pattern = "**/*.pb.go"
max_lines = 5000
reason = "Generated protobuf files"

[[content.rules]]
pattern = "**/{{*_mock,mock_*}}.go"
max_lines = 2000
reason = "Generated mock files"

[structure]
max_files = 20
max_dirs = 10
warn_threshold = 0.9
deny_files = ["*.bak", "*.tmp", ".DS_Store", "Thumbs.db"]
deny_extensions = [".exe", ".dll", ".so", ".dylib"]

[[structure.rules]]
scope = "test/**"
max_files = 50
max_dirs = 15
reason = "{_TEST_DIR_REASON}"

[[structure.rules]]
scope = "internal/**"
max_files = 30
max_dirs = 20
reason = "Internal packages may have deeper structure"

[[structure.rules]]
scope = "cmd/**"
max_files = 15
max_dirs = 10
reason = "Each command should be relatively small"
"""

_MONOREPO_BASE = f"""
version = "2"

[scanner]
exclude = [
    ".git/**", "target/**", "vendor/**", "node_modules/**", "dist/**", "build/**",
    ".next/**", ".nuxt/**", "**/__pycache__/**", ".venv/**", "venv/**",
    "*.egg-info/**", ".pytest_cache/**", "coverage/**", ".cache/**",
]

[content]
extensions = ["rs", "js", "jsx", "ts", "tsx", "py", "go", "java", "kt", "swift", "vue", "svelte"]
max_lines = 600
warn_threshold = 0.85
skip_comments = true
skip_blank = true

[[content.rules]]
pattern = "**/*_{{test,tests}}.rs"
max_lines = 1000
reason = "Test files need more space"

[[content.rules]]
pattern = "**/*.{{test,spec}}.{{js,jsx,ts,tsx}}"
max_lines = 1000
reason = "Test files need more space"

[[content.rules]]
pattern = "**/{{test_*,*_test}}.py"
max_lines = 1000
reason = "Test files need more space"

[[content.rules]]
pattern = "**/*_test.go"
max_lines = 1000
reason = "Test files need more space"

[[content.rules]]
pattern = "**/src/test/**/*.{{java,kt}}"
max_lines = 1000
reason = "Test files need more space"

[structure]
max_files = 30
max_dirs = 20
warn_threshold = 0.9
deny_files = ["*.bak", "*.tmp", ".DS_Store", "Thumbs.db"]
deny_extensions = [".exe", ".dll", ".so", ".dylib"]

[[structure.rules]]
scope = "{{__tests__,test,tests}}/**"
max_files = 50
max_dirs = 25
reason = "{_TEST_DIR_REASON}"

[[structure.rules]]
scope = "**/src/test/**"
max_files = 50
max_dirs = 25
reason = "Java/Kotlin test source directories"
"""

_PRESETS: dict[str, str] = {
    "rust-strict": _RUST_STRICT,
    "node-strict": _NODE_STRICT,
    "python-strict": _PYTHON_STRICT,
    "go-strict": _GO_STRICT,
    "monorepo-base": _MONOREPO_BASE,
}


def available_presets() -> list[str]:
    return list(_PRESETS)


def is_preset_reference(value: str) -> bool:
    return value.startswith(PRESET_PREFIX)


def preset_name(value: str) -> str:
    return value[len(PRESET_PREFIX) :]


def load_preset(name: str) -> dict[str, Any]:
    """Return the parsed preset table for `name`."""
    content = _PRESETS.get(name)
    if content is None:
        raise ConfigError(
            f"Unknown preset: '{name}'. Available presets: {', '.join(_PRESETS)}",
            suggestion="Use one of the listed presets, e.g. extends = \"preset:rust-strict\".",
        )
    return tomllib.loads(content)
