"""Prompt templates for the marker detector.

Each prompt is a function returning a (system_prompt, user_prompt) pair.
"""

from __future__ import annotations

import json

from wireoverlay.diagram.model import topology_for
from wireoverlay.types import Variant

_GLYPHS = {"1": "①", "2": "②", "3": "③", "4": "④", "A": "ⓐ"}


def marker_prompt(variant: Variant) -> tuple[str, str]:
    """Prompt asking for the normalized centers of the variant's markers."""
    labels = [m.value for m in topology_for(variant).markers]
    described = ", ".join(f"{_GLYPHS[label]} ({label})" for label in labels)
    keys = ", ".join(f'"{label}"' for label in labels)

    example = {label: None for label in labels}
    example[labels[0]] = {"x": 100, "y": 200}
    example[labels[1]] = {"x": 105, "y": 400}

    system = (
        "You locate annotation markers on photographs. "
        "You only report markers you can actually see."
    )
    user = f"""Locate the exact center of each marker enclosed in a yellow circle: {described}.

Return a JSON object with keys {keys}.
Each value is an object {{"x": number, "y": number}} giving the marker's center,
normalized to a 0-1000 scale (0,0 is the top-left corner, 1000,1000 the bottom-right).
If a marker is not visible, set its value to null.

Example output:
{json.dumps(example, indent=2)}
"""
    return system, user
