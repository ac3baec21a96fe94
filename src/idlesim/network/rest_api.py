"""REST API: FastAPI application for player intents and read views.

Every intent samples the clock once, calls the matching engine service
and answers ``{"success": bool, "error": str}``.  Uvicorn serves the app
in the same asyncio loop as the game loop, so requests and
reconciliation passes never interleave inside a service call.

Usage::

    from idlesim.network.rest_api import create_app

    app = create_app(services)
    # Start with uvicorn as an asyncio task alongside the game loop
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from idlesim.models.items import RecipeKind
from idlesim.network.rest_models import (
    ActionResponse,
    AssignRequest,
    BuildingRequest,
    BuildRequest,
    CombatStartRequest,
    ContactRequest,
    ConvertRequest,
    CraftStartRequest,
    CraftStopRequest,
    CreatePlayerRequest,
    EquipRequest,
    GatherStartRequest,
    GatherStopRequest,
    HarvestRequest,
    NotificationsResponse,
    PlantRequest,
    PlayerSummary,
    RecruitRequest,
    ResumeRequest,
    StanceRequest,
    StateResponse,
    UnequipRequest,
)
from idlesim.persistence.state_save import serialize_player

if TYPE_CHECKING:
    from idlesim.main import Services
    from idlesim.models.player import PlayerState

log = logging.getLogger(__name__)


def _result(error: Optional[str]) -> dict[str, Any]:
    return {"success": error is None, "error": error or ""}


def _recipe_kind(kind: str) -> RecipeKind:
    try:
        return RecipeKind(kind)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown recipe kind: {kind}")


def create_app(services: "Services") -> FastAPI:
    """Factory: create and return a configured FastAPI application.

    The ``services`` reference is captured by closure so every endpoint
    can access game logic without global state.
    """
    app = FastAPI(title="Idle Simulation Server", version="1.0.0")

    # CORS: allow browser access from any origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _player(uid: int) -> PlayerState:
        player = services.players.get(uid)
        if player is None:
            raise HTTPException(status_code=404, detail=f"Unknown player: {uid}")
        return player

    # =================================================================
    # Players
    # =================================================================

    @app.get("/api/players", response_model=list[PlayerSummary])
    async def list_players() -> list[dict[str, Any]]:
        return [
            {"uid": p.uid, "name": p.name, "gold": p.gold}
            for p in services.players.all_players.values()
        ]

    @app.post("/api/players", response_model=ActionResponse)
    async def create_player(body: CreatePlayerRequest) -> dict[str, Any]:
        if services.players.get(body.uid) is not None:
            return _result(f"Player {body.uid} already exists")
        services.players.create_player(body.uid, body.name)
        return _result(None)

    @app.get("/api/players/{uid}/state", response_model=StateResponse)
    async def get_state(uid: int) -> dict[str, Any]:
        player = _player(uid)
        now = services.clock()
        combat = player.combat
        stats = services.combat.player_stats(player)
        return {
            "player": serialize_player(player),
            "combat": {
                "phase": combat.phase.value,
                "enemy_id": combat.enemy_id,
                "player_health": combat.player_health,
                "player_max_health": combat.player_max_health,
                "enemy_health": combat.enemy_health,
                "enemy_max_health": combat.enemy_max_health,
                "attacker_turn": combat.attacker_turn.value,
                "searching_until": combat.searching_until,
                "attack_speed": stats.attack_speed,
                "damage": stats.damage,
                "accuracy": stats.accuracy,
                "armor": stats.armor,
                "log": list(combat.log),
            },
            "now": now,
        }

    @app.get("/api/players/{uid}/notifications", response_model=NotificationsResponse)
    async def drain_notifications(uid: int) -> dict[str, Any]:
        player = _player(uid)
        return {"notifications": [
            {"message": n.message, "kind": n.kind, "time_ms": n.time_ms}
            for n in player.notifications.drain()
        ]}

    # =================================================================
    # Gathering / crafting / contacts
    # =================================================================

    @app.post("/api/players/{uid}/gather/start", response_model=ActionResponse)
    async def gather_start(uid: int, body: GatherStartRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.tasks.start_gathering(
            player, body.resource_id, services.clock(), auto_resume=body.auto_resume))

    @app.post("/api/players/{uid}/gather/stop", response_model=ActionResponse)
    async def gather_stop(uid: int, body: GatherStopRequest) -> dict[str, Any]:
        player = _player(uid)
        services.tasks.stop_gathering(player, services.clock(), body.resource_id)
        return _result(None)

    @app.post("/api/players/{uid}/craft/start", response_model=ActionResponse)
    async def craft_start(uid: int, body: CraftStartRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.tasks.start_crafting(
            player, _recipe_kind(body.kind), body.recipe_id, services.clock(),
            auto_resume=body.auto_resume))

    @app.post("/api/players/{uid}/craft/stop", response_model=ActionResponse)
    async def craft_stop(uid: int, body: CraftStopRequest) -> dict[str, Any]:
        player = _player(uid)
        services.tasks.stop_crafting(player, _recipe_kind(body.kind), services.clock(),
                                     body.recipe_id)
        return _result(None)

    @app.post("/api/players/{uid}/contact", response_model=ActionResponse)
    async def contact(uid: int, body: ContactRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.tasks.start_contact(player, body.planet_id, services.clock()))

    @app.post("/api/players/{uid}/veterancy/convert", response_model=ActionResponse)
    async def convert(uid: int, body: ConvertRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.veterancy.convert(
            player, body.skill_id, body.resource_id, body.amount))

    # =================================================================
    # Village
    # =================================================================

    @app.post("/api/players/{uid}/village/build", response_model=ActionResponse)
    async def build(uid: int, body: BuildRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.production.start_construction(
            player, body.building_type, services.clock()))

    @app.post("/api/players/{uid}/village/recruit", response_model=ActionResponse)
    async def recruit(uid: int, body: RecruitRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.production.recruit_villager(
            player, body.villager_type, services.clock()))

    @app.post("/api/players/{uid}/village/assign", response_model=ActionResponse)
    async def assign(uid: int, body: AssignRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.production.assign_worker(
            player, body.villager_id, body.building_id, services.clock()))

    @app.post("/api/players/{uid}/village/collect", response_model=ActionResponse)
    async def collect(uid: int, body: BuildingRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.production.collect(player, body.building_id, services.clock()))

    @app.post("/api/players/{uid}/village/upgrade", response_model=ActionResponse)
    async def upgrade(uid: int, body: BuildingRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.production.upgrade(player, body.building_id, services.clock()))

    # =================================================================
    # Farming
    # =================================================================

    @app.post("/api/players/{uid}/farming/plot", response_model=ActionResponse)
    async def purchase_plot(uid: int) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.farming.purchase_plot(player, services.clock()))

    @app.post("/api/players/{uid}/farming/plant", response_model=ActionResponse)
    async def plant(uid: int, body: PlantRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.farming.plant(player, body.plot_id, body.seed_id,
                                              services.clock()))

    @app.post("/api/players/{uid}/farming/harvest", response_model=ActionResponse)
    async def harvest(uid: int, body: HarvestRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.farming.harvest(player, body.plot_id, services.clock()))

    # =================================================================
    # Combat
    # =================================================================

    @app.post("/api/players/{uid}/combat/start", response_model=ActionResponse)
    async def combat_start(uid: int, body: CombatStartRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.combat.start_combat(player, body.enemy_id, services.clock()))

    @app.post("/api/players/{uid}/combat/stop", response_model=ActionResponse)
    async def combat_stop(uid: int) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.combat.stop_combat(player, services.clock()))

    @app.post("/api/players/{uid}/combat/stance", response_model=ActionResponse)
    async def combat_stance(uid: int, body: StanceRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.combat.set_stance(player, body.stance, services.clock()))

    @app.post("/api/players/{uid}/combat/resume", response_model=ActionResponse)
    async def combat_resume(uid: int, body: ResumeRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.combat.resume(player, services.clock(), restart=body.restart))

    @app.post("/api/players/{uid}/equip", response_model=ActionResponse)
    async def equip(uid: int, body: EquipRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.combat.equip(player, body.item_id, services.clock()))

    @app.post("/api/players/{uid}/unequip", response_model=ActionResponse)
    async def unequip(uid: int, body: UnequipRequest) -> dict[str, Any]:
        player = _player(uid)
        return _result(services.combat.unequip(player, body.slot, services.clock()))

    log.info("REST API created with %d routes", len(app.routes))
    return app
