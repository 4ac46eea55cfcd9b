"""
Position repository.

Positions are looked up by user, and a user's positions can in principle
span organizations, so lookups are keyed by user_id rather than scoped to a
single organization. Writes still go through the organization check.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from retail_access.constants.hierarchy import DepartmentType
from retail_access.database.session import translate_integrity_errors
from retail_access.models.department import Department
from retail_access.models.position import Position, position_departments

logger = logging.getLogger(__name__)


class PositionRepository:

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get_by_id(self, position_id: str) -> Optional[Position]:
        return self.db_session.query(Position).filter(Position.id == position_id).first()

    def get_active_positions(self, user_id: str) -> List[Position]:
        """Active positions of a user, most recently activated first."""
        return (
            self.db_session.query(Position)
            .filter(Position.user_id == user_id, Position.is_active.is_(True))
            .order_by(Position.activated_at.desc().nulls_last(), Position.created_at.desc())
            .all()
        )

    def get_active_position(self, user_id: str) -> Optional[Position]:
        """
        The user's active position: the active one activated last.

        More than one active position is not prevented by the schema; when it
        happens the most recent one wins and a warning is logged.
        """
        positions = self.get_active_positions(user_id)
        if not positions:
            return None
        if len(positions) > 1:
            logger.warning(
                "position.multiple_active",
                extra={
                    "user_id": user_id,
                    "position_ids": [p.id for p in positions],
                    "selected_position_id": positions[0].id,
                },
            )
        return positions[0]

    def get_departments_for_position(self, position_id: str) -> frozenset[DepartmentType]:
        """Active department types linked to a position."""
        rows = (
            self.db_session.query(Department.department_type)
            .join(position_departments, position_departments.c.department_id == Department.id)
            .filter(
                position_departments.c.position_id == position_id,
                Department.is_active.is_(True),
            )
            .all()
        )
        return frozenset(DepartmentType(row[0]) for row in rows)

    def get_positions_in_units(self, organization_id: str, unit_ids) -> List[Position]:
        unit_ids = list(unit_ids)
        if not unit_ids:
            return []
        return (
            self.db_session.query(Position)
            .filter(
                Position.organization_id == organization_id,
                Position.organization_unit_id.in_(unit_ids),
                Position.is_active.is_(True),
            )
            .all()
        )

    def save(self, position: Position) -> Position:
        with translate_integrity_errors(
            self.db_session, "User already holds a position at this unit"
        ):
            self.db_session.add(position)
            self.db_session.flush()
        return position
