"""
Referral codes for subscribers.

Business rules:
- Each user gets a unique 8-character uppercase hex referral code, created on first request
- A referral is recorded once, when a new user signs up with someone else's code
- The dashboard shows how many users a subscriber has referred
"""
from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.exceptions import SubscriberNotFoundError
from app.models import models
from app.utils.id_generator import generate_referral_code

logger = logging.getLogger(__name__)


class ReferralService:
    """Service for managing the referral program."""

    def __init__(self, db: Session):
        self.db = db

    def _get_user(self, user_id: int) -> models.User:
        user = self.db.query(models.User).filter(models.User.id == user_id).one_or_none()
        if not user:
            raise SubscriberNotFoundError(user_id)
        return user

    def get_or_create_referral_code(self, user_id: int) -> str:
        user = self._get_user(user_id)
        if user.referral_code:
            return user.referral_code

        for _ in range(10):  # Max 10 attempts to avoid collision
            code = generate_referral_code()
            exists = self.db.query(models.User.id).filter(models.User.referral_code == code).first()
            if not exists:
                break
        else:
            code = f"{generate_referral_code()[:5]}{user_id}"

        user.referral_code = code
        self.db.commit()
        logger.info("Created referral code %s for user %s", code, user_id)
        return code

    def apply_referral(self, user_id: int, code: str) -> bool:
        """Link ``user_id`` to the owner of ``code``; returns False if nothing was recorded."""
        user = self._get_user(user_id)
        if user.referred_by_id is not None:
            return False
        referrer = (
            self.db.query(models.User)
            .filter(models.User.referral_code == code.strip().upper(), models.User.deleted_at.is_(None))
            .one_or_none()
        )
        if referrer is None or referrer.id == user.id:
            logger.info("Ignoring referral code %s for user %s", code, user_id)
            return False
        user.referred_by_id = referrer.id
        self.db.commit()
        logger.info("User %s referred by user %s", user_id, referrer.id)
        return True

    def referral_count(self, user_id: int) -> int:
        return (
            self.db.query(func.count(models.User.id))
            .filter(models.User.referred_by_id == user_id, models.User.deleted_at.is_(None))
            .scalar()
            or 0
        )
