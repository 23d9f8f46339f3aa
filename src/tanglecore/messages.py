"""
Message content models and the tangle accessor capability.

The ordering engine does not care what a message looks like. It only needs
an object that can answer two questions:

    identity()      -> the message's own MessageRef
    tangle(name)    -> (declared root, previous refs) for a named tangle

``TangledPost`` captures that as a Protocol. The pydantic models below are
the stock implementation for ssb-style ``post`` content carrying tangles v2
information, with references serialized as sigil strings.

Usage:
    from tanglecore.messages import load_messages

    messages = load_messages("thread.yaml")
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, PlainValidator, field_validator

from tanglecore.refs import MessageRef, parse_message_ref

__all__ = [
    "TangledPost",
    "Ref",
    "TanglePoint",
    "Post",
    "KeyedMessage",
    "load_messages",
]


class TangledPost(Protocol):
    """Capability consumed by the ordering engine."""

    def identity(self) -> MessageRef:
        ...

    def tangle(self, name: str) -> Tuple[Optional[MessageRef], Sequence[MessageRef]]:
        ...


def _coerce_ref(value: Any) -> MessageRef:
    if isinstance(value, MessageRef):
        return value
    if isinstance(value, str):
        return parse_message_ref(value)
    raise ValueError(f"expected a message sigil, got {type(value).__name__}")


# MessageRef as a pydantic field: sigil string on the wire, MessageRef in Python
Ref = Annotated[
    MessageRef,
    PlainValidator(_coerce_ref),
    PlainSerializer(lambda r: r.sigil(), return_type=str),
]


class TanglePoint(BaseModel):
    """
    A single tangle membership: the common root plus the previous messages
    that were seen when this message was written.
    """
    model_config = ConfigDict(frozen=True)

    root: Optional[Ref] = Field(None, description="Origin message of the tangle")
    previous: List[Ref] = Field(default_factory=list, description="Causal predecessors")

    @field_validator("previous", mode="before")
    @classmethod
    def _null_previous(cls, v: Any) -> Any:
        """The root message is published with ``previous: null``."""
        return [] if v is None else v


class Post(BaseModel):
    """Textual message content with legacy thread fields and tangles."""
    model_config = ConfigDict(extra="allow")

    type: str = Field(default="post", description="Content type")
    text: str = Field(default="", description="Markdown body")

    # Legacy threading (before tangles v2)
    root: Optional[Ref] = Field(None, description="Thread origin")
    branch: List[Ref] = Field(default_factory=list, description="Thread tips seen by the author")

    mentions: List[Dict[str, Any]] = Field(default_factory=list)
    tangles: Dict[str, TanglePoint] = Field(default_factory=dict)

    @field_validator("branch", mode="before")
    @classmethod
    def _single_branch(cls, v: Any) -> Any:
        """Older clients publish a single branch ref instead of a list."""
        if v is None:
            return []
        if isinstance(v, (str, MessageRef)):
            return [v]
        return v

    def tangle(self, name: str) -> Tuple[Optional[MessageRef], List[MessageRef]]:
        """
        Return ``(root, previous)`` for the named tangle.

        The empty name selects the legacy ``root``/``branch`` thread fields.
        Content that is not part of the tangle answers ``(None, [])``.
        """
        point = self.tangles.get(name)
        if point is not None:
            return point.root, list(point.previous)
        if name == "":
            return self.root, list(self.branch)
        return None, []


class KeyedMessage(BaseModel):
    """A message key together with its decoded content."""
    model_config = ConfigDict(frozen=True)

    key: Ref
    content: Post

    def identity(self) -> MessageRef:
        return self.key

    def tangle(self, name: str) -> Tuple[Optional[MessageRef], List[MessageRef]]:
        return self.content.tangle(name)


def load_messages(path: Union[str, Path]) -> List[KeyedMessage]:
    """
    Load a list of keyed messages from a JSON or YAML file.

    The format is chosen by extension: ``.yaml``/``.yml`` is read with
    PyYAML, everything else as JSON.

    Raises:
        ValueError: If the document is not a list
        pydantic.ValidationError: If an entry does not match KeyedMessage
    """
    path = Path(path)
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(raw)
    else:
        data = json.loads(raw)

    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of messages, got {type(data).__name__}")

    return [KeyedMessage.model_validate(entry) for entry in data]
