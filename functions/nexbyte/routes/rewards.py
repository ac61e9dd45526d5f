"""
Rewards spin feature.

At most one reward is ``active`` at a time: creating a reward, or resetting
a finished one, completes every other active reward in the same batch.
The admin can "rig" the draw by naming the audience index the client-side
wheel should land on; ``riggedIndex == -1`` means a fair draw.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from nexbyte.conventions import (
    NEWEST_FIRST,
    client_fields,
    delete_or_404,
    ensure_unique,
    get_or_404,
    now,
    ok,
    update_or_404,
)
from nexbyte.dependencies import get_store
from nexbyte.schemas import (
    CategoryCreate,
    CategoryUpdate,
    EditRewardCommand,
    Envelope,
    ResetSpinCommand,
    RewardCreate,
    RewardUpdate,
    RigCommand,
    RigRequest,
    TriggerSpinCommand,
    WinnerCommand,
    WinnerRequest,
)
from nexbyte.store import DocumentStore, InsertOp, UpdateManyOp, UpdateOp

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rewards", tags=["rewards"])

REWARDS = "rewards"
REWARD_CATEGORIES = "reward_categories"

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
NO_RIGGING = -1


def _ensure_category(store: DocumentStore, category_id: Optional[str]) -> None:
    if category_id and not store.get(REWARD_CATEGORIES, category_id):
        raise HTTPException(status_code=400, detail="Reward category does not exist")


def run_reward_command(store: DocumentStore, reward_id: str, command) -> str:
    """Apply one tagged update to a reward and return the response message."""
    reward = get_or_404(store, REWARDS, reward_id, "Reward")

    if isinstance(command, RigCommand):
        index = command.riggedIndex
        audience = reward.get("audience") or []
        if index != NO_RIGGING and not 0 <= index < len(audience):
            raise HTTPException(status_code=400, detail="riggedIndex out of range")
        update_or_404(store, REWARDS, reward_id, {"riggedIndex": index}, "Reward")
        return "Rigged index updated"

    if isinstance(command, TriggerSpinCommand):
        if reward.get("status") != STATUS_ACTIVE:
            raise HTTPException(status_code=400, detail="Reward is not active")
        update_or_404(store, REWARDS, reward_id, {"spinTriggeredAt": now()}, "Reward")
        return "Spin triggered"

    if isinstance(command, WinnerCommand):
        update_or_404(
            store,
            REWARDS,
            reward_id,
            {
                "winner": command.winner,
                "status": STATUS_COMPLETED,
                "completedAt": now(),
            },
            "Reward",
        )
        return "Winner recorded"

    if isinstance(command, ResetSpinCommand):
        _, others_completed = store.apply(
            [
                UpdateOp(
                    REWARDS,
                    reward_id,
                    {
                        "winner": None,
                        "spinTriggeredAt": None,
                        "completedAt": None,
                        "status": STATUS_ACTIVE,
                    },
                ),
                UpdateManyOp(
                    REWARDS,
                    {"status": STATUS_ACTIVE, "id": {"$ne": reward_id}},
                    {"status": STATUS_COMPLETED},
                ),
            ]
        )
        if others_completed:
            logger.info(
                "Reset of reward %s completed %d other active rewards",
                reward_id,
                others_completed,
            )
        return "Spin reset"

    if isinstance(command, EditRewardCommand):
        fields = command.payload.model_dump(exclude_unset=True)
        _ensure_category(store, fields.get("categoryId"))
        update_or_404(store, REWARDS, reward_id, {**fields, "updatedAt": now()}, "Reward")
        return "Reward updated"

    raise HTTPException(status_code=400, detail="Unknown update type")


@router.get("", response_model=Envelope)
def list_rewards(
    category_id: Optional[str] = Query(None, alias="categoryId"),
    store: DocumentStore = Depends(get_store),
):
    where = {"categoryId": category_id} if category_id else None
    return ok(data=store.find(REWARDS, where, sort=NEWEST_FIRST))


@router.get("/active", response_model=Envelope)
def get_active_reward(store: DocumentStore = Depends(get_store)):
    reward = store.find_one(REWARDS, {"status": STATUS_ACTIVE}, sort=NEWEST_FIRST)
    if not reward:
        raise HTTPException(status_code=404, detail="No active reward found")
    return ok(data=reward)


@router.post("", response_model=Envelope, status_code=201)
def create_reward(payload: RewardCreate, store: DocumentStore = Depends(get_store)):
    _ensure_category(store, payload.categoryId)
    reward = {
        **client_fields(payload),
        "status": STATUS_ACTIVE,
        "riggedIndex": NO_RIGGING,
        "winner": None,
        "spinTriggeredAt": None,
        "createdAt": now(),
    }
    completed, reward_id = store.apply(
        [
            UpdateManyOp(REWARDS, {"status": STATUS_ACTIVE}, {"status": STATUS_COMPLETED}),
            InsertOp(REWARDS, reward),
        ]
    )
    logger.info("Created reward %s, completed %d previous active rewards", reward_id, completed)
    return ok(message="Reward created", id=reward_id)


# --- Categories ---


@router.get("/categories", response_model=Envelope)
def list_reward_categories(store: DocumentStore = Depends(get_store)):
    return ok(data=store.find(REWARD_CATEGORIES, sort=[("name", 1)]))


@router.post("/categories", response_model=Envelope, status_code=201)
def create_reward_category(
    payload: CategoryCreate, store: DocumentStore = Depends(get_store)
):
    ensure_unique(store, REWARD_CATEGORIES, "name", payload.name, label="Category")
    category_id = store.insert(
        REWARD_CATEGORIES, {**client_fields(payload), "createdAt": now()}
    )
    return ok(message="Category created", id=category_id)


@router.put("/categories/{category_id}", response_model=Envelope)
def update_reward_category(
    category_id: str,
    payload: CategoryUpdate,
    store: DocumentStore = Depends(get_store),
):
    fields = client_fields(payload, exclude_unset=True)
    if "name" in fields:
        ensure_unique(
            store,
            REWARD_CATEGORIES,
            "name",
            fields["name"],
            exclude_id=category_id,
            label="Category",
        )
    update_or_404(
        store, REWARD_CATEGORIES, category_id, {**fields, "updatedAt": now()}, "Category"
    )
    return ok(message="Category updated")


@router.delete("/categories/{category_id}", response_model=Envelope)
def delete_reward_category(category_id: str, store: DocumentStore = Depends(get_store)):
    in_use = store.count(REWARDS, {"categoryId": category_id})
    if in_use:
        raise HTTPException(
            status_code=400,
            detail=f"Category is used by {in_use} reward(s) and cannot be deleted",
        )
    delete_or_404(store, REWARD_CATEGORIES, category_id, "Category")
    return ok(message="Category deleted")


# --- Single reward ---


@router.get("/{reward_id}", response_model=Envelope)
def get_reward(reward_id: str, store: DocumentStore = Depends(get_store)):
    return ok(data=get_or_404(store, REWARDS, reward_id, "Reward"))


@router.put("/{reward_id}", response_model=Envelope)
def update_reward(
    reward_id: str,
    payload: RewardUpdate,
    store: DocumentStore = Depends(get_store),
):
    return ok(message=run_reward_command(store, reward_id, payload.root))


@router.put("/{reward_id}/rig", response_model=Envelope)
def rig_reward(
    reward_id: str, payload: RigRequest, store: DocumentStore = Depends(get_store)
):
    command = RigCommand(type="rig", riggedIndex=payload.riggedIndex)
    return ok(message=run_reward_command(store, reward_id, command))


@router.put("/{reward_id}/trigger-spin", response_model=Envelope)
def trigger_spin(reward_id: str, store: DocumentStore = Depends(get_store)):
    command = TriggerSpinCommand(type="trigger-spin")
    return ok(message=run_reward_command(store, reward_id, command))


@router.put("/{reward_id}/reset-spin", response_model=Envelope)
def reset_spin(reward_id: str, store: DocumentStore = Depends(get_store)):
    command = ResetSpinCommand(type="reset-spin")
    return ok(message=run_reward_command(store, reward_id, command))


@router.put("/{reward_id}/winner", response_model=Envelope)
def set_winner(
    reward_id: str, payload: WinnerRequest, store: DocumentStore = Depends(get_store)
):
    command = WinnerCommand(type="winner", winner=payload.winner)
    return ok(message=run_reward_command(store, reward_id, command))


@router.delete("/{reward_id}", response_model=Envelope)
def delete_reward(reward_id: str, store: DocumentStore = Depends(get_store)):
    delete_or_404(store, REWARDS, reward_id, "Reward")
    return ok(message="Reward deleted")
