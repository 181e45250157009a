# tests/test_modifier.py
import pytest

from modcore.config import ModifierConfig
from modcore.errors import ModifierValidationError
from modcore.host import Actor, Item, Token
from modcore.models import BonusType, DamageSection, EffectType, Modifier, ModifierType, has_damage_section_data


def fire_damage():
    return {"damageGroup": 0, "damageTypes": {"fire": True}}


# ==========================================
# 1. DEFAULTS & IDS
# ==========================================

def test_defaults():
    mod = Modifier()
    assert mod.name == "New Modifier"
    assert mod.modifier == "0"
    assert mod.max == 0
    assert mod.type is BonusType.UNTYPED
    assert mod.modifier_type is ModifierType.CONSTANT
    assert mod.effect_type is EffectType.SKILL
    assert mod.value_affected == ""
    assert mod.enabled is False
    assert mod.subtab == "misc"
    assert mod.damage is None
    assert mod.limit_to is None
    assert mod.global_modifier is False
    assert mod.id


def test_id_prefers_underscore_id_then_id():
    assert Modifier.from_dict({"_id": "abc", "id": "xyz"}).id == "abc"
    assert Modifier.from_dict({"id": "xyz"}).id == "xyz"


def test_generated_ids_are_unique():
    assert Modifier.from_dict({}).id != Modifier.from_dict({}).id


def test_id_factory_from_config():
    cfg = ModifierConfig(id_factory=lambda: "fixed-id")
    assert Modifier.from_dict({}, config=cfg).id == "fixed-id"


def test_numeric_modifier_becomes_string():
    mod = Modifier.from_dict({"modifier": 3})
    assert mod.modifier == "3"
    assert mod.max == 3


def test_loose_wire_values_are_coerced():
    mod = Modifier.from_dict(
        {
            "_id": 42,
            "name": 7,
            "enabled": "true",
            "max": "3",
            "source": 12,
            "damage": {"damageGroup": "2", "damageTypes": {"fire": True}},
        }
    )
    assert mod.id == "42"
    assert mod.name == "7"
    assert mod.enabled is True
    assert mod.source == "12"
    assert mod.damage.damage_group == 2


@pytest.mark.parametrize(
    "raw, expected",
    [(True, True), (1, True), (0, False), ("true", True), ("false", False), ("yes", False), ({}, False), (None, False)],
)
def test_enabled_uses_host_bool_cast(raw, expected):
    assert Modifier.from_dict({"enabled": raw}).enabled is expected


def test_global_modifier_option():
    mod = Modifier.from_dict({"name": "Haste"}, global_modifier=True)
    assert mod.global_modifier is True
    assert "globalModifier" not in mod.to_object(source=False)


# ==========================================
# 2. VALIDATION
# ==========================================

def test_bad_choice_is_rejected():
    with pytest.raises(ModifierValidationError) as exc:
        Modifier.from_dict({"type": "sacred"})
    assert any("type" in e for e in exc.value.errors)


def test_all_errors_are_reported_together():
    with pytest.raises(ModifierValidationError) as exc:
        Modifier.from_dict({"name": "Broken", "type": "sacred", "subtab": "nowhere", "effectType": "luck"})
    assert len(exc.value.errors) == 3
    assert "Broken" in str(exc.value)


@pytest.mark.parametrize(
    "data",
    [
        {"name": ""},
        {"name": "   "},
        {"limitTo": "everywhere"},
        {"modifierType": "dice"},
        {"max": "three"},
        {"damage": {"damageTypes": ["fire"]}},
        {"modifier": None},
        {"damage": {"damageGroup": "first", "damageTypes": {"fire": True}}},
    ],
)
def test_invalid_fields(data):
    with pytest.raises(ModifierValidationError):
        Modifier.from_dict(data)


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        Modifier(type="sacred")


def test_legacy_damage_section_modifier_type_is_accepted():
    mod = Modifier.from_dict({"modifierType": "damageSection"})
    assert mod.modifier_type == "damageSection"


def test_wire_strings_become_enums():
    mod = Modifier.from_dict({"type": "morale", "effectType": "all-attacks", "modifierType": "formula"})
    assert mod.type is BonusType.MORALE
    assert mod.effect_type is EffectType.ALL_ATTACKS
    assert mod.modifier_type is ModifierType.FORMULA


# ==========================================
# 3. CLEAN DATA & SERIALIZATION
# ==========================================

def test_clean_data_drops_empty_damage_and_limit():
    cleaned = Modifier.clean_data(
        {"damage": {"damageGroup": 1, "damageTypes": {"fire": False}}, "limitTo": "", "container": {"id": "bag"}}
    )
    assert cleaned["damage"] is None
    assert cleaned["limitTo"] is None
    assert "container" not in cleaned


def test_clean_data_normalizes_damage_types():
    cleaned = Modifier.clean_data({"damage": {"damageGroup": 0, "damageTypes": {"fire": 1, "force": True}}})
    types = cleaned["damage"]["damageTypes"]
    assert types["fire"] is True
    assert "force" not in types
    assert set(types) == {"acid", "cold", "electricity", "fire", "sonic", "bludgeoning", "piercing", "slashing"}


def test_unconfigured_damage_type_alone_is_not_a_section():
    cleaned = Modifier.clean_data({"damage": {"damageTypes": {"force": True}}})
    assert cleaned["damage"] is None


def test_to_object_is_minimal():
    obj = Modifier.from_dict({"_id": "m1", "name": "Bless", "modifier": "1"}).to_object()
    assert "damage" not in obj
    assert "limitTo" not in obj
    assert "container" not in obj
    assert obj["_id"] == "m1"
    assert obj["type"] == "untyped"
    assert isinstance(obj["type"], str)


def test_to_object_keeps_set_optional_sections():
    obj = Modifier.from_dict({"damage": fire_damage(), "limitTo": "parent"}).to_object()
    assert obj["damage"]["damageTypes"]["fire"] is True
    assert obj["damage"]["damageGroup"] == 0
    assert obj["limitTo"] == "parent"


def test_full_serialization_has_every_field():
    obj = Modifier.from_dict({"name": "Bless"}).to_object(source=False)
    assert list(obj) == [
        "_id", "name", "modifier", "max", "type", "modifierType", "effectType", "valueAffected",
        "enabled", "source", "notes", "subtab", "condition", "damage", "limitTo",
    ]
    assert obj["damage"] is None
    assert obj["limitTo"] is None


def test_minimal_object_rebuilds_the_same_modifier():
    mod = Modifier.from_dict({"name": "Bless", "modifier": "1", "type": "morale", "damage": fire_damage()})
    assert Modifier.from_dict(mod.to_object()) == mod


def test_has_damage_section():
    assert Modifier.from_dict({"damage": fire_damage()}).has_damage_section
    assert not Modifier.from_dict({}).has_damage_section
    assert has_damage_section_data({"damage": fire_damage()})
    assert not has_damage_section_data({"damage": None})
    assert not has_damage_section_data(None)
    assert not has_damage_section_data({"damage": ["fire"]})


def test_damage_section_accepts_dict_in_constructor():
    mod = Modifier(damage={"damageGroup": 2, "damageTypes": {"acid": True}})
    assert isinstance(mod.damage, DamageSection)
    assert mod.damage.flagged == ["acid"]


# ==========================================
# 4. MAX
# ==========================================

def test_max_uses_parent_roll_data(actor):
    mod = actor.add_modifier(name="Strength to hit", modifier="@abilities.str.mod")
    assert mod.max == 3


def test_max_counts_dice_at_their_highest(actor):
    mod = actor.add_modifier(name="Bless", modifier="1d4+1", modifierType="formula")
    assert mod.max == 5


def test_max_is_rounded_down():
    assert Modifier(modifier="7/2").max == 3


@pytest.mark.parametrize("value", ["2 +", "@missing.value", "1/0", ""])
def test_unevaluable_modifier_has_zero_max(value):
    assert Modifier(modifier=value).max == 0


@pytest.mark.parametrize(
    "value, data",
    [
        ("9" * 400 + "/1", {}),
        ("@huge", {"huge": "9" * 5000}),
        ("@signs", {"signs": "-" * 5000 + "1"}),
        ("@big * 10", {"big": 1e308}),
    ],
)
def test_runaway_values_give_zero_max(value, data):
    actor = Actor(id="a", name="Overflow", system=data)
    assert actor.add_modifier(modifier=value).max == 0


def test_max_is_not_taken_from_input():
    assert Modifier.from_dict({"modifier": "2", "max": 99}).max == 2


def test_max_follows_parent_data_changes(actor):
    mod = actor.add_modifier(modifier="@abilities.str.mod")
    actor.update({"system.abilities.str.mod": 5})
    assert mod.max == 5


# ==========================================
# 5. UPDATE & EVALUATE
# ==========================================

def test_update_source_revalidates_and_recomputes():
    mod = Modifier(modifier="1")
    mod.update_source({"modifier": "4", "type": "luck"})
    assert mod.max == 4
    assert mod.type is BonusType.LUCK
    with pytest.raises(ModifierValidationError):
        mod.update_source({"subtab": "nowhere"})


def test_evaluate_constant(actor):
    mod = actor.add_modifier(modifier="@abilities.dex.mod + 1")
    assert mod.evaluate().total == 2


def test_evaluate_formula_rolls(max_dice):
    mod = Modifier(modifier="1d4", modifier_type="formula")
    assert mod.evaluate(dice=max_dice).total == 4


def test_applies_to():
    mod = Modifier(effect_type="skill", value_affected="acr")
    assert mod.applies_to("skill", "acr")
    assert mod.applies_to(EffectType.SKILL, "acr")
    assert not mod.applies_to("skill")
    assert not mod.applies_to("skill", "ath")
    assert not mod.applies_to("save", "acr")
    assert Modifier(effect_type="skill").applies_to("skill", "ath")
    assert Modifier(effect_type="skill").applies_to("skill")


def test_roll_part_label():
    assert Modifier(name="Bless", modifier="1d4").roll_part == "1d4[Bless]"
    assert Modifier(name="Blessed [II] weapon", modifier="1d4").roll_part == "1d4[Blessed II weapon]"


# ==========================================
# 6. PARENT ACCESSORS
# ==========================================

def test_actor_parent(actor):
    mod = actor.add_modifier(name="Haste")
    assert mod.actor is actor
    assert mod.item is None


def test_item_parent(actor, weapon):
    mod = weapon.add_modifier(name="Sight")
    assert mod.item is weapon
    assert mod.actor is actor


def test_unowned_item_has_no_actor():
    item = Item(id="loose", name="Loose Battery")
    mod = item.add_modifier(name="Charge")
    assert mod.actor is None
    assert mod.token is None


def test_token_for_regular_actor_is_linked_active_tokens(actor):
    mod = actor.add_modifier(name="Haste")
    assert [t.id for t in mod.token] == ["tok-1"]


def test_token_for_token_actor():
    tok = Token(id="tok-9", name="Goblin", actor_id="goblin")
    npc = Actor(id="goblin", name="Goblin", is_token=True, token=tok)
    mod = npc.add_modifier(name="Frightened")
    assert mod.token is tok


def test_no_parent():
    mod = Modifier()
    assert mod.actor is None
    assert mod.item is None
    assert mod.token is None


# ==========================================
# 7. TOGGLE
# ==========================================

def test_toggle_flips_and_persists_through_parent(actor):
    mod = actor.add_modifier(name="Bless", enabled=False)
    actor.updates.clear()

    mod.toggle()
    assert mod.enabled is True
    assert actor.get_modifier(mod.id).enabled is True
    assert list(actor.updates[-1]) == ["system.modifiers"]

    mod.toggle()
    assert mod.enabled is False


def test_toggle_to_explicit_state(actor):
    mod = actor.add_modifier(name="Bless")
    mod.toggle(True)
    mod.toggle(True)
    assert mod.enabled is True
    mod.toggle(False)
    assert mod.enabled is False


def test_toggle_updates_the_stored_copy(actor):
    mod = actor.add_modifier(name="Bless")
    detached = Modifier.from_dict(mod.to_object(), parent=actor)
    detached.toggle(True)
    assert actor.get_modifier(mod.id).enabled is True
    assert detached.enabled is True


def test_toggle_without_parent():
    with pytest.raises(ValueError, match="no parent"):
        Modifier(name="Loose").toggle()


def test_toggle_when_not_on_parent(actor):
    stray = Modifier(name="Stray", parent=actor)
    with pytest.raises(KeyError):
        stray.toggle()
