"""Pytest configuration and fixtures for CodeTrace tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from codetrace.cache import NullCache
from codetrace.config import SearchSettings
from codetrace.path_guard import PathGuard
from codetrace.search_engine import SearchEngine
from codetrace.walker import FileWalker

ENV_VARS = (
    "CODETRACE_ALLOWED_PATHS",
    "CODETRACE_MAX_FILE_SIZE",
    "CODETRACE_MAX_DEPTH",
    "CODETRACE_MAX_FILES",
    "CODETRACE_MAX_RESULTS",
    "CODETRACE_BATCH_SIZE",
    "CODETRACE_MAX_WORKERS",
    "CODETRACE_TRAVERSAL_DEPTH",
    "CODETRACE_CACHE_ENABLED",
    "CODETRACE_CACHE_SIZE",
    "CODETRACE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path_factory):
    """Keep tests away from the user's ~/.codetrace/config.toml and CODETRACE_* env."""
    config_dir = tmp_path_factory.mktemp("codetrace_home")
    monkeypatch.setattr("codetrace.config_manager.CONFIG_FILE", config_dir / "config.toml")
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def make_tree() -> Callable[[Path, Dict[str, str]], Path]:
    """Write ``{relative path: content}`` under a root directory."""

    def _make(root: Path, files: Dict[str, str]) -> Path:
        for rel, content in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def settings(temp_dir: Path) -> SearchSettings:
    """Settings allowing only the temp dir, with small batches and no cache."""
    return SearchSettings(
        allowed_paths=(str(temp_dir),),
        batch_size=2,
        max_workers=2,
        cache_enabled=False,
    )


@pytest.fixture
def path_guard(settings: SearchSettings) -> PathGuard:
    return PathGuard(settings.allowed_paths)


@pytest.fixture
def walker(path_guard: PathGuard, settings: SearchSettings) -> FileWalker:
    return FileWalker(path_guard, max_file_size=settings.max_file_size, max_depth=settings.max_depth)


@pytest.fixture
def engine(settings: SearchSettings, path_guard: PathGuard, walker: FileWalker) -> SearchEngine:
    """Search engine with caching disabled so every call hits the file system."""
    return SearchEngine(settings, path_guard, walker, cache=NullCache())


SAMPLE_FILES = {
    "src/main/java/com/acme/ValidationService.java": """package com.acme;

public class ValidationService {

    public void validate(String x) {
        if (!ConfigStore.colPlanList.contains(x)) {
            throw new IllegalStateException("Invalid plan code: " + x);
        }
    }
}
""",
    "src/main/java/com/acme/ConfigLoader.java": """package com.acme;

public class ConfigLoader {

    private JdbcTemplate jdbcTemplate;

    public void populateColPlanList() {
        ConfigStore.colPlanList = jdbcTemplate.query("SELECT * FROM PLAN_TABLE");
    }
}
""",
    "src/main/java/com/acme/Constants.java": """package com.acme;

public class Constants {
    public static final String DEFAULT_PLAN = "BASIC";
    public static final String ALIAS_PLAN = DEFAULT_PLAN;
    public static final int MAX_RETRIES = 3;
}
""",
    "db/schema.sql": """CREATE TABLE PLAN_TABLE (
    PLAN_CODE VARCHAR(20) PRIMARY KEY,
    DESCRIPTION VARCHAR(100)
);
""",
    "web/app.js": """function handleOrder(order) {
  if (!order.id) {
    throw new Error("Order id missing");
  }
}
""",
    "docs/README.md": """# Payment Gateway

- Handles order processing
- Validates plan codes
""",
    "node_modules/lib/index.js": "function handleOrder() { return 'vendored'; }\n",
    ".git/config": "[core]\n\thandleOrder = true\n",
}


@pytest.fixture
def sample_project(temp_dir: Path, make_tree) -> Path:
    """A small multi-language project rooted in the temp dir."""
    return make_tree(temp_dir, SAMPLE_FILES)
