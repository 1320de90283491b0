"""Pydantic field validators for state-variable configurations.

Provides validator factories that normalise user-friendly inputs (bare
numbers, mappings, sequences) into per-variable mappings with bounds
checking, for reuse across the jump-process and stochastic-map configs.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union
import math


# Inputs accepted wherever a per-variable value is expected
VariableInput = Union[float, int, Mapping[str, Union[float, int]]]

DEFAULT_VARIABLE = 'x'


def variable_mapping_field(
    kind: type = float,
    min_value: Optional[float] = None,
    allow_scalar: bool = True,
) -> Callable:
    """Create a Pydantic field validator for per-variable values.

    The validator accepts a mapping ``{name: value}`` or, when
    ``allow_scalar`` is set, a bare number which names the single variable
    ``'x'``. Values are coerced to ``kind``.

    Args:
        kind: ``float`` or ``int``
        min_value: Optional inclusive lower bound for every value
        allow_scalar: Whether a bare number is accepted

    Returns:
        Field validator function for Pydantic models

    Example:
        class MyConfig(BaseModel):
            initial_state: Dict[str, float]

            _validate_initial = field_validator("initial_state", mode="before")(
                variable_mapping_field(float, min_value=0.0)
            )
    """
    def validator(value: Any, info: Optional[Any] = None) -> Dict[str, Any]:
        if isinstance(value, Mapping):
            items = list(value.items())
        elif allow_scalar and isinstance(value, (int, float)) and not isinstance(value, bool):
            items = [(DEFAULT_VARIABLE, value)]
        else:
            raise ValueError(
                f"Expected a mapping of variable name to value, got {type(value).__name__}"
            )

        if not items:
            raise ValueError("At least one state variable is required")

        result = {}
        for name, raw in items:
            if not isinstance(name, str) or not name:
                raise ValueError(f"Variable names must be non-empty strings, got {name!r}")
            if kind is int:
                if isinstance(raw, float) and not raw.is_integer():
                    raise ValueError(f"'{name}' must be an integer count, got {raw}")
                coerced = int(raw)
            else:
                coerced = float(raw)
                if math.isnan(coerced):
                    raise ValueError(f"'{name}' must not be NaN")
            if min_value is not None and coerced < min_value:
                raise ValueError(f"'{name}' must be >= {min_value}, got {coerced}")
            result[name] = coerced
        return result

    return validator


def broadcast_to_variables(
    value: Union[float, Mapping[str, float]],
    variables: Sequence[str],
    what: str,
) -> Tuple[float, ...]:
    """Align a scalar or per-variable mapping to a variable ordering.

    A scalar applies to every variable. A mapping must name every variable
    and nothing else.

    Raises:
        KeyError: If a variable is missing from the mapping (message names it)
        ValueError: If the mapping names unknown variables
    """
    if not isinstance(value, Mapping):
        return tuple(float(value) for _ in variables)

    unknown = set(value) - set(variables)
    if unknown:
        raise ValueError(f"{what} names unknown variables: {sorted(unknown)}")
    missing = [name for name in variables if name not in value]
    if missing:
        raise KeyError(f"{what} missing for variables: {missing}")
    return tuple(float(value[name]) for name in variables)


def transition_vector(
    value: Union[Mapping[str, int], Sequence[int]],
    variables: Sequence[str],
) -> Tuple[int, ...]:
    """Normalise one transition to an integer delta vector.

    Accepts ``{name: delta}`` (unnamed variables get 0) or a sequence
    aligned with ``variables``.
    """
    if isinstance(value, Mapping):
        unknown = set(value) - set(variables)
        if unknown:
            raise ValueError(f"Transition names unknown variables: {sorted(unknown)}")
        deltas = [value.get(name, 0) for name in variables]
    else:
        deltas = list(value)
        if len(deltas) != len(variables):
            raise ValueError(
                f"Transition {tuple(deltas)} has {len(deltas)} entries, "
                f"expected {len(variables)} (one per variable)"
            )

    result = []
    for delta in deltas:
        if isinstance(delta, float) and not delta.is_integer():
            raise ValueError(f"Transition deltas must be integers, got {delta}")
        result.append(int(delta))
    if not any(result):
        raise ValueError("Transition must change at least one variable")
    return tuple(result)
