"""
Checkpoint service — longitudinal SCALE check-ins.

Public API
----------
list_checkpoints(db, email)           -> list[Checkpoint]   (oldest first)
get_latest_checkpoint(db, email)      -> Checkpoint | None
submit_checkpoint(db, email, data)    -> Checkpoint
"""
from __future__ import annotations

from typing import Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coaching_portal.core.errors import CheckpointAlreadyExistsError
from coaching_portal.models.checkpoint import Checkpoint
from coaching_portal.schemas.checkpoints import CheckpointCreate
from coaching_portal.services.connections import normalize_email


def list_checkpoints(db: Session, email: str) -> list[Checkpoint]:
    return (
        db.query(Checkpoint)
        .filter(Checkpoint.email == normalize_email(email))
        .order_by(Checkpoint.checkpoint_number.asc())
        .all()
    )


def get_latest_checkpoint(db: Session, email: str) -> Optional[Checkpoint]:
    return (
        db.query(Checkpoint)
        .filter(Checkpoint.email == normalize_email(email))
        .order_by(Checkpoint.checkpoint_number.desc())
        .first()
    )


def submit_checkpoint(db: Session, email: str, data: CheckpointCreate) -> Checkpoint:
    email = normalize_email(email)
    exists = (
        db.query(Checkpoint.id)
        .filter(Checkpoint.email == email, Checkpoint.checkpoint_number == data.checkpoint_number)
        .first()
    )
    if exists is not None:
        raise CheckpointAlreadyExistsError(data.checkpoint_number)

    checkpoint = Checkpoint(email=email, **data.model_dump())
    db.add(checkpoint)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise CheckpointAlreadyExistsError(data.checkpoint_number)
    db.refresh(checkpoint)
    logger.info("Checkpoint submitted", email=email, checkpoint_number=data.checkpoint_number)
    return checkpoint
