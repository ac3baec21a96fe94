"""Simulation constants: curve shapes, ratios, caps.

Numbers that define the mechanics themselves.  Balance knobs that an
operator may want to tune live in GameConfig instead.
"""

# -- Leveling curve ------------------------------------------------------

XP_CURVE_BASE: float = 300.0
XP_CURVE_DOUBLING_LEVELS: float = 7.0
XP_CURVE_DIVISOR: float = 4.0

MAX_LEVEL_SEARCH: int = 1000
"""Safety ceiling for level-from-experience searches."""

# -- Veterancy -----------------------------------------------------------

RESOURCE_VETERANCY_MAX_LEVEL: int = 200
SKILL_VETERANCY_MAX_LEVEL: int = 100
SKILL_VETERANCY_LEVEL_COST: int = 100
"""Pool XP for skill-veterancy level L is L * this (triangular curve)."""

SKILL_VETERANCY_RATIO: float = 0.5
"""Skill veterancy XP per point of primary skill XP."""

VETERANCY_CONVERSION_RATE: int = 10
"""Skill pool XP per point of resource veterancy XP."""

MAX_SPEED_BONUS_PERCENT: float = 50.0
SPEED_BONUS_PER_LEVEL: float = 0.5

GATHER_LIMIT_BONUS_LEVELS: int = 5
MAX_GATHER_LIMIT_BONUS: int = 50

# -- Village -------------------------------------------------------------

LEVEL_PRODUCTION_BONUS: float = 0.15
EXTRA_WORKER_BONUS: float = 0.25
UPGRADE_COST_GROWTH: float = 1.5
MS_PER_HOUR: int = 3_600_000

# -- Combat --------------------------------------------------------------

COMBAT_XP_PER_DAMAGE: float = 0.4
BLOCK_XP_PER_MITIGATED: float = 1.0
BLOCK_REDUCTION: float = 0.5
MAX_MITIGATION_PERCENT: float = 75.0
MAX_ARMOR_MITIGATION_PERCENT: float = 50.0
ARMOR_MITIGATION_PER_POINT: float = 2.0
DEFAULT_ARMOR: float = 50.0
DEFAULT_AFFINITY: float = 55.0
MAX_CRIT_CHANCE: float = 50.0
MAGIC_DAMAGE_TYPES = ("energy", "psychic", "void")
