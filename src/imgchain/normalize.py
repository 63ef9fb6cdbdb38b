from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

from .aliases import DEFAULT_ALIASES, AliasEntry
from .errors import InvalidOperationTypeError
from .types import BASE_FAMILIES, CanonicalOperation, Family, OperationDescriptor
from .utils.coerce import number_or_default

logger = logging.getLogger("imgchain.normalize")

# Bare umbrella types from the old API. They never said which filter or
# effect to run, so they are refused outright.
REJECTED_UMBRELLA_TYPES = frozenset({"filter", "effects"})

FILTER_PREFIX = "filter-"
EFFECT_PREFIXES = ("effects-", "effect-")

_BASE_BY_NAME: Dict[str, Family] = {f.value: f for f in BASE_FAMILIES}


class OperationNormalizer:
    """Map one raw `{type, params}` descriptor to a `CanonicalOperation`.

    Spellings are tried in a fixed order:

      1. a base family name (``resize``, ``crop``, ``shapeCrop`` ...)
      2. the bare umbrella types ``filter`` / ``effects`` (rejected)
      3. ``filter-<variant>``
      4. ``effects-<variant>`` / ``effect-<variant>``
      5. a flat alias from the alias table (``grayscale``, ``filter_blur`` ...)
      6. ``<group>:<variant>`` with group ``effects`` or ``filter``
      7. anything else passes through and is rejected at dispatch

    Only the family, the variant and the merged parameter bag are decided
    here; per-family type coercion happens in the routines.
    """

    def __init__(self, aliases: Optional[Mapping[str, AliasEntry]] = None):
        self.aliases = DEFAULT_ALIASES if aliases is None else aliases

    def normalize(
        self,
        descriptor: Union[OperationDescriptor, Mapping[str, Any]],
        *,
        step: Optional[int] = None,
    ) -> CanonicalOperation:
        desc = OperationDescriptor.coerce(descriptor)
        op_type = desc.type
        params = dict(desc.params or {})

        if not op_type:
            where = f"operation {step + 1}" if step is not None else "operation"
            raise InvalidOperationTypeError(op_type, f"{where} is missing the 'type' field", step=step)

        base = _BASE_BY_NAME.get(op_type)
        if base is not None:
            return CanonicalOperation(family=base, params=params)

        if op_type in REJECTED_UMBRELLA_TYPES:
            raise InvalidOperationTypeError(op_type, step=step)

        if op_type.startswith(FILTER_PREFIX):
            return self._filter(op_type[len(FILTER_PREFIX):], params)

        for prefix in EFFECT_PREFIXES:
            if op_type.startswith(prefix):
                return CanonicalOperation(family=Family.EFFECT, variant=op_type[len(prefix):], params=params)

        entry = self.aliases.get(op_type)
        if entry is not None:
            return CanonicalOperation(family=entry.family, variant=entry.variant, params=entry.merged(params))

        if ":" in op_type:
            group, _, variant = op_type.partition(":")
            if group == "effects":
                return self._effect_variant(variant, params)
            if group == "filter":
                return self._filter(variant, params)

        logger.debug("passing through unrecognized operation type %r", op_type)
        return CanonicalOperation(family=op_type, params=params)

    def _filter(self, variant: str, params: Dict[str, Any]) -> CanonicalOperation:
        merged = dict(params)
        merged["intensity"] = number_or_default(params, "intensity", 1)
        return CanonicalOperation(family=Family.FILTER, variant=variant, params=merged)

    def _effect_variant(self, variant: str, params: Dict[str, Any]) -> CanonicalOperation:
        # effects:<name> behaves like the flat alias when one exists,
        # otherwise like effects-<name>.
        entry = self.aliases.get(variant)
        if entry is not None:
            return CanonicalOperation(family=entry.family, variant=entry.variant, params=entry.merged(params))
        return CanonicalOperation(family=Family.EFFECT, variant=variant, params=params)
