# tests/conftest.py
import pytest

from modcore import ModifierEngine
from modcore.dice import Dice
from modcore.host import Actor, Item, Token


class MaxRng:
    """Stand-in RNG: every die lands on its highest face."""

    def randint(self, a, b):
        return b


class MinRng:
    def randint(self, a, b):
        return a


# ==========================================
# FIXTURES
# ==========================================

@pytest.fixture
def max_dice():
    return Dice(rng=MaxRng())


@pytest.fixture
def min_dice():
    return Dice(rng=MinRng())


@pytest.fixture
def roll_data():
    return {
        "abilities": {
            "str": {"value": 16, "mod": 3},
            "dex": {"value": 12, "mod": 1},
            "wis": {"value": 8, "mod": -1},
        },
        "details": {"level": {"value": 5}},
        "attributes": {"bab": 4},
        "flags": {"flatFooted": True},
    }


@pytest.fixture
def actor(roll_data):
    """A level 5 character with two placed tokens (one unlinked)."""
    return Actor(
        id="actor-1",
        name="Navasi",
        system=dict(roll_data),
        tokens=[
            Token(id="tok-1", name="Navasi", actor_id="actor-1", linked=True),
            Token(id="tok-2", name="Navasi (copy)", actor_id="actor-1", linked=False),
        ],
    )


@pytest.fixture
def weapon(actor):
    """An owned weapon item."""
    return actor.add_item(Item(id="item-laser", name="Azimuth Laser Pistol", system={"level": 1}))


@pytest.fixture
def engine(max_dice):
    eng = ModifierEngine(seed=7)
    eng.dice = max_dice
    eng.rules.dice = max_dice
    return eng
