"""
Pytest configuration and shared fixtures for policy store tests.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
import yaml

from policystore.policy import PolicyModel
from policystore.storage.store import PolicyStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db_url(temp_dir: Path) -> str:
    """SQLite database URL in the temporary directory."""
    return f"sqlite:///{temp_dir / 'policy.db'}"


@pytest.fixture
def store(db_url: str) -> Generator[PolicyStore, None, None]:
    """Create an empty policy store."""
    store = PolicyStore(db_url)
    yield store
    store.close()


@pytest.fixture
def model() -> PolicyModel:
    """Create an empty policy model."""
    return PolicyModel()


@pytest.fixture
def sample_rules() -> dict[str, list[list[str]]]:
    """Basic RBAC policy with a role inheritance rule."""
    return {
        "p": [
            ["alice", "data1", "read"],
            ["bob", "data2", "write"],
            ["data2_admin", "data2", "read"],
            ["data2_admin", "data2", "write"],
        ],
        "g": [
            ["alice", "data2_admin"],
        ],
    }


@pytest.fixture
def seeded_store(
    store: PolicyStore,
    sample_rules: dict[str, list[list[str]]],
) -> PolicyStore:
    """Policy store holding the sample rules."""
    store.add_policies("p", "p", sample_rules["p"])
    store.add_policies("g", "g", sample_rules["g"])
    return store


@pytest.fixture
def sample_config(temp_dir: Path) -> Path:
    """Create a sample configuration file."""
    config_path = temp_dir / "policy-store.yaml"
    config_data = {
        "database": {
            "url": f"sqlite:///{temp_dir / 'configured.db'}",
            "table_name": "rules",
        },
        "logging": {
            "level": "debug",
        },
    }
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def sample_policy_file(temp_dir: Path) -> Path:
    """Create a policy file with one rule per line."""
    policy_path = temp_dir / "policy.csv"
    policy_path.write_text(
        "# permissions\n"
        "p, alice, data1, read\n"
        "p, bob, data2, write\n"
        "\n"
        "g, alice, data2_admin\n"
    )
    return policy_path
