"""Pydantic request/response models for the REST API.

These models define the HTTP request bodies and response shapes of the
player intents.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ActionResponse(BaseModel):
    success: bool
    error: str = ""


# ===================================================================
# Players
# ===================================================================


class CreatePlayerRequest(BaseModel):
    uid: int
    name: str = ""


class PlayerSummary(BaseModel):
    uid: int
    name: str
    gold: int


class NotificationOut(BaseModel):
    message: str
    kind: str = "info"
    time_ms: int = 0


class NotificationsResponse(BaseModel):
    notifications: List[NotificationOut] = Field(default_factory=list)


class StateResponse(BaseModel):
    player: Dict[str, Any]
    combat: Dict[str, Any]
    now: int


# ===================================================================
# Tasks
# ===================================================================


class GatherStartRequest(BaseModel):
    resource_id: str
    auto_resume: bool = True


class GatherStopRequest(BaseModel):
    resource_id: Optional[str] = None


class CraftStartRequest(BaseModel):
    kind: str = "smelt"
    recipe_id: str
    auto_resume: bool = True


class CraftStopRequest(BaseModel):
    kind: str = "smelt"
    recipe_id: Optional[str] = None


class ContactRequest(BaseModel):
    planet_id: str


class ConvertRequest(BaseModel):
    skill_id: str
    resource_id: str
    amount: int = Field(gt=0)


# ===================================================================
# Village
# ===================================================================


class BuildRequest(BaseModel):
    building_type: str


class RecruitRequest(BaseModel):
    villager_type: str


class AssignRequest(BaseModel):
    villager_id: str
    building_id: Optional[str] = None


class BuildingRequest(BaseModel):
    building_id: str


# ===================================================================
# Farming
# ===================================================================


class PlantRequest(BaseModel):
    plot_id: str
    seed_id: str


class HarvestRequest(BaseModel):
    plot_id: str


# ===================================================================
# Combat
# ===================================================================


class CombatStartRequest(BaseModel):
    enemy_id: str


class StanceRequest(BaseModel):
    stance: str


class ResumeRequest(BaseModel):
    restart: bool = False


class EquipRequest(BaseModel):
    item_id: str


class UnequipRequest(BaseModel):
    slot: str
