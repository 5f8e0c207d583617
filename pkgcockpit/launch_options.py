#===============================================================================
#  Package Cockpit | launch_options.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Turns launch option definitions + chosen values into command-line tokens.
#
#  Rules
#  -----
#    - unset values fall back to the definition default; empty -> no tokens
#    - BOOL with two templates: first when true, second when false
#    - BOOL with one template: emitted only when true
#    - STRING/INT/PATH: "{value}" is interpolated, otherwise value is appended
#    - a blank template (Extras) shell-splits the raw value
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import shlex
from typing import Any, Dict, Iterable, List, Sequence

from .models import LaunchOption, LaunchOptionDefinition, LaunchOptionType


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def render_option(definition: LaunchOptionDefinition, value: Any = None) -> List[str]:
    """Render one definition to zero or more tokens."""
    if value is None:
        value = definition.default

    if definition.type is LaunchOptionType.BOOL:
        if value is None:
            return []
        flag = _as_bool(value)
        if len(definition.options) >= 2:
            return shlex.split(definition.options[0] if flag else definition.options[1])
        return shlex.split(definition.options[0]) if flag and definition.options else []

    if value is None or str(value).strip() == "":
        return []

    if definition.type is LaunchOptionType.INT:
        value = int(value)

    tokens: List[str] = []
    for template in definition.options:
        if not template.strip():
            tokens += shlex.split(str(value))
        elif "{value}" in template:
            tokens += shlex.split(template.replace("{value}", shlex.quote(str(value))))
        else:
            tokens += shlex.split(template) + [str(value)]
    return tokens


def render_launch_args(
    definitions: Sequence[LaunchOptionDefinition],
    values: Iterable[LaunchOption] = (),
) -> List[str]:
    """Render all definitions in declaration order."""
    chosen: Dict[str, Any] = {opt.name: opt.value for opt in values}
    args: List[str] = []
    for definition in definitions:
        args += render_option(definition, chosen.get(definition.name))
    return args


def to_arg_string(args: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in args)


def default_launch_args(definitions: Sequence[LaunchOptionDefinition]) -> List[LaunchOption]:
    """Fresh LaunchOption list holding each definition's default."""
    return [LaunchOption(name=d.name, type=d.type, value=d.default) for d in definitions]
