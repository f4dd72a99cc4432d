"""
Form fields that make up a hypermedia action
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

FIELD_TYPES = (
    'checkbox', 'color', 'date', 'datetime', 'datetime-local', 'email', 'file',
    'hidden', 'month', 'number', 'password', 'radio', 'range', 'search', 'tel',
    'text', 'textarea', 'time', 'url', 'week',
)


@dataclass
class Field:
    """A single field of an action, modelled after HTML5 form inputs."""

    name: str
    type: str = 'text'
    required: bool = False
    read_only: bool = False
    label: Optional[str] = None
    value: Any = None
    placeholder: Any = None
    options: Dict[str, str] = field(default_factory=dict)
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None

    def __post_init__(self):
        if self.type not in FIELD_TYPES:
            self.type = 'text'
