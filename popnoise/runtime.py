"""Shared runtime helpers for JAX-compatible simulation structures.

The runtime tier stores state as fixed-size vectors. ``StateLayout`` maps
those vectors to and from the ``{name: value}`` mappings that user rate,
drift and noise callables work with. It is registered as static pytree
metadata so it can live inside Penzai structs passed through ``jit``/``vmap``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Sequence, Tuple

import jax
import jax.numpy as jnp
import numpy as np


@dataclass(frozen=True)
class StateLayout:
    """Named slots of a state vector.

    Attributes:
        variables: Variable names in vector order
    """
    variables: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.variables)

    def index(self, name: str) -> int:
        return self.variables.index(name)

    def as_mapping(self, vector: jax.Array) -> Dict[str, jax.Array]:
        """View a state vector as ``{name: scalar}``."""
        return {name: vector[i] for i, name in enumerate(self.variables)}

    def to_vector(self, mapping: Mapping[str, Any], dtype=None) -> jax.Array:
        """Build a state vector from a mapping, in layout order."""
        return jnp.stack(
            [jnp.asarray(mapping[name], dtype=dtype) for name in self.variables]
        )

    def to_host(self, vector: Any) -> Dict[str, float]:
        """Convert a state vector to a mapping of Python numbers."""
        values = np.asarray(vector)
        return {name: values[i].item() for i, name in enumerate(self.variables)}


jax.tree_util.register_static(StateLayout)


def stack_outputs(
    outputs: Any,
    layout: StateLayout,
    what: str,
    dtype=None,
) -> jax.Array:
    """Stack a callable's per-variable output into a vector.

    Args:
        outputs: Mapping ``{name: value}`` returned by a drift or noise function
        layout: Variable ordering
        what: Label used in error messages

    Raises:
        KeyError: If ``outputs`` lacks a variable of the layout
    """
    if not isinstance(outputs, Mapping):
        raise TypeError(f"{what} must return a mapping of variable name to value")
    missing = [name for name in layout.variables if name not in outputs]
    if missing:
        raise KeyError(f"{what} output is missing variables {missing}")
    return layout.to_vector(outputs, dtype=dtype)


def stack_rates(rates: Sequence[Any], dtype=None) -> jax.Array:
    """Stack a rate function's output into a 1-D rate vector."""
    if isinstance(rates, jax.Array):
        return jnp.ravel(rates).astype(dtype) if dtype is not None else jnp.ravel(rates)
    return jnp.stack([jnp.asarray(r, dtype=dtype) for r in rates])


def tree_info(pytree) -> str:
    """Get information about a pytree structure.

    Useful for debugging and understanding the structure of runtime objects.

    Args:
        pytree: Any pytree structure

    Returns:
        String description of the pytree structure
    """
    flat, treedef = jax.tree_util.tree_flatten(pytree)
    return (
        f"PyTree with {len(flat)} leaves:\n"
        f"  Structure: {treedef}\n"
        f"  Leaf shapes: {[getattr(x, 'shape', type(x).__name__) for x in flat]}"
    )
