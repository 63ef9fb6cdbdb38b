from __future__ import annotations

import pytest

from imgchain.aliases import DEFAULT_ALIASES, AliasEntry, build_alias_table
from imgchain.errors import InvalidOperationTypeError, UnsupportedOperationTypeError
from imgchain.normalize import OperationNormalizer
from imgchain.routines import FamilyRoutines
from imgchain.types import CanonicalOperation, Family, OperationDescriptor


def norm(op_type, params=None, **kw):
    return OperationNormalizer().normalize({"type": op_type, "params": params or {}}, **kw)


def test_base_family_passes_through_unchanged():
    op = norm("resize", {"width": 300, "quality": "80"})
    assert op.family is Family.RESIZE
    assert op.variant is None
    assert op.params == {"width": 300, "quality": "80"}


def test_shape_crop_keeps_camel_case_name():
    assert norm("shapeCrop", {"shape": "circle"}).family is Family.SHAPE_CROP


@pytest.mark.parametrize("op_type", ["filter", "effects"])
def test_bare_umbrella_types_are_rejected(op_type):
    with pytest.raises(InvalidOperationTypeError) as ei:
        norm(op_type, {"filterType": "blur"}, step=2)
    assert ei.value.step == 2
    assert "prefixed" in ei.value.message


def test_missing_type_reports_position():
    with pytest.raises(InvalidOperationTypeError) as ei:
        OperationNormalizer().normalize({"params": {}}, step=1)
    assert "operation 2" in ei.value.message


def test_non_mapping_descriptor_is_a_type_error():
    with pytest.raises(TypeError):
        OperationNormalizer().normalize("resize")


def test_filter_prefix_defaults_intensity_to_one():
    op = norm("filter-blur")
    assert op == CanonicalOperation(family=Family.FILTER, variant="blur", params={"intensity": 1})


def test_filter_prefix_keeps_given_intensity():
    assert norm("filter-sharpen", {"intensity": 3}).params["intensity"] == 3
    assert norm("filter-sharpen", {"intensity": "2.5"}).params["intensity"] == 2.5
    assert norm("filter-sharpen", {"intensity": 0}).params["intensity"] == 0


def test_filter_prefix_unparseable_intensity_falls_back():
    assert norm("filter-edge", {"intensity": "lots"}).params["intensity"] == 1


@pytest.mark.parametrize("prefix", ["effects-", "effect-"])
def test_effect_prefix_does_not_merge_alias_defaults(prefix):
    op = norm(prefix + "grayscale", {"intensity": 50})
    assert op.family is Family.EFFECT
    assert op.variant == "grayscale"
    assert op.params == {"intensity": 50}


def test_every_alias_yields_its_defaults():
    normalizer = OperationNormalizer()
    for name, entry in DEFAULT_ALIASES.items():
        op = normalizer.normalize(OperationDescriptor(type=name, params={}))
        assert op.family is entry.family, name
        assert op.variant == entry.variant, name
        assert op.params == dict(entry.defaults), name


def test_alias_caller_params_win_over_defaults():
    op = norm("grayscale", {"intensity": 30})
    assert op.params == {"method": "Rec601Luma", "intensity": 30}


def test_legacy_underscore_filters():
    op = norm("filter_sepia")
    assert op.family is Family.FILTER
    assert op.variant == "sepia"
    assert op.params == {"intensity": 80}
    assert norm("filter_oil_painting").variant == "oil-painting"


def test_colon_effects_uses_alias_when_known():
    assert norm("effects:sepia").params == {"intensity": 80}
    op = norm("effects:glitch", {"amount": 2})
    assert op.family is Family.EFFECT
    assert op.variant == "glitch"
    assert op.params == {"amount": 2}


def test_colon_filter():
    op = norm("filter:blur")
    assert op.family is Family.FILTER
    assert op.variant == "blur"
    assert op.params == {"intensity": 1}


def test_unknown_type_passes_through_and_fails_at_dispatch():
    op = norm("sparkle", {"x": 1})
    assert op.family == "sparkle"
    assert op.family_name == "sparkle"

    routines = FamilyRoutines(engine=object())
    with pytest.raises(UnsupportedOperationTypeError) as ei:
        routines.routine_for(op)
    assert ei.value.message == "Unsupported operation type: sparkle"


def test_unknown_colon_group_passes_through():
    assert norm("preset:warm").family == "preset:warm"


def test_extra_aliases_override_builtins():
    table = build_alias_table([("bw", AliasEntry(family=Family.EFFECT, variant="grayscale", defaults={"intensity": 100}))])
    op = OperationNormalizer(table).normalize({"type": "bw"})
    assert op.variant == "grayscale"
    assert op.params == {"intensity": 100}
    assert "bw" not in DEFAULT_ALIASES
