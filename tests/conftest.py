"""
Pytest configuration and fixtures for tanglecore tests.
"""

from __future__ import annotations

import hashlib
import logging
import os
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, Generator, List, Optional, Sequence, Tuple

import pytest

from tanglecore.config import reset_config
from tanglecore.refs import MessageRef


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def test_env() -> Dict[str, str]:
    """Test environment variables."""
    return {
        "TANGLECORE_DEFAULT_TANGLE": "post",
        "TANGLECORE_TIE_BREAK": "identity",
        "TANGLECORE_MAX_MESSAGES": "10000",
    }


@pytest.fixture(autouse=True)
def set_test_env(test_env: Dict[str, str]) -> Generator[None, None, None]:
    """Set test environment variables and a fresh config for each test."""
    original = {}
    for key, value in test_env.items():
        original[key] = os.environ.get(key)
        os.environ[key] = value
    reset_config()

    yield

    reset_config()
    for key, value in original.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture(autouse=True)
def drop_log_handlers() -> Generator[None, None, None]:
    """Remove handlers installed by configure_logging (CLI tests)."""
    yield
    logger = logging.getLogger("tanglecore")
    for handler in list(logger.handlers):
        if getattr(handler, "_tanglecore_handler", False):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ============================================================================
# Message Fixtures
# ============================================================================


def fake_ref(key: str) -> MessageRef:
    """Short, readable ref for graph tests."""
    return MessageRef(hash=key.encode("utf-8"), algo="fake")


def sha_ref(label: str) -> MessageRef:
    """Realistic sha256 ref derived from a label."""
    return MessageRef.from_bytes(hashlib.sha256(label.encode("utf-8")).digest())


@dataclass
class FakeMessage:
    """Minimal TangledPost: a key, its previous keys and the expected position."""
    key: str
    prev: List[str] = field(default_factory=list)
    order: int = 0
    root: Optional[str] = None

    def identity(self) -> MessageRef:
        return fake_ref(self.key)

    def tangle(self, name: str) -> Tuple[Optional[MessageRef], List[MessageRef]]:
        root = fake_ref(self.root) if self.root else None
        return root, [fake_ref(p) for p in self.prev]


def keys_of(messages: Sequence[FakeMessage]) -> List[str]:
    return [m.key for m in messages]


def assert_causal(messages: Sequence[FakeMessage]) -> None:
    """Every message must come after each message it points to."""
    position = {m.key: i for i, m in enumerate(messages)}
    for m in messages:
        for p in m.prev:
            assert position[p] < position[m.key], f"{m.key} sorted before its previous {p}"


@pytest.fixture
def make_messages() -> Callable[..., List[FakeMessage]]:
    """Factory: make_messages(("p1", []), ("p2", ["p1"]), ...)."""
    def _make(*specs: Tuple[str, Sequence[str]]) -> List[FakeMessage]:
        return [
            FakeMessage(key=key, prev=list(prev), order=i + 1)
            for i, (key, prev) in enumerate(specs)
        ]
    return _make


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for shuffling inputs."""
    return random.Random(1337)
