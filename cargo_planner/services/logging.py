from typing import Optional
from datetime import datetime, timezone
import math
from sqlalchemy.orm import Session
from sqlalchemy import and_
from ..models import Log
from ..schemas import LogResponse, LogEntry, Pagination
from ..utils.dates import as_utc

ACTION_TYPES = ("placement", "retrieval", "rearrangement", "disposal")

class LoggingService:
    """Activity log written by the orchestration layer.

    Entries join the caller's transaction; they are committed (or rolled
    back) together with the change they describe.
    """

    def add_log(
        self,
        db: Session,
        user_id: str,
        action_type: str,
        item_id: str,
        details: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
        container_id: Optional[str] = None
    ) -> Log:
        if action_type not in ACTION_TYPES:
            raise ValueError(f"Unknown action type {action_type!r}")
        log = Log(
            user_id=user_id,
            action_type=action_type,
            item_id=str(item_id),
            container_id=container_id,
            details=details,
            timestamp=as_utc(timestamp) if timestamp else datetime.now(timezone.utc)
        )
        db.add(log)
        return log

    def get_logs(
        self,
        db: Session,
        start_date: datetime,
        end_date: datetime,
        item_id: Optional[str] = None,
        user_id: Optional[str] = None,
        action_type: Optional[str] = None,
        container_id: Optional[str] = None,
        limit: int = 20,
        page: int = 1
    ) -> LogResponse:
        """Entries in ``[start_date, end_date]``, oldest first, one page at a time."""
        query = db.query(Log).filter(and_(
            Log.timestamp >= as_utc(start_date),
            Log.timestamp <= as_utc(end_date)
        ))

        if item_id:
            query = query.filter(Log.item_id == str(item_id))
        if user_id:
            query = query.filter(Log.user_id == user_id)
        if action_type:
            query = query.filter(Log.action_type == action_type)
        if container_id:
            query = query.filter(Log.container_id == container_id)

        total = query.count()
        rows = query.order_by(Log.timestamp, Log.id).offset((page - 1) * limit).limit(limit).all()

        logs = [
            LogEntry(
                timestamp=as_utc(log.timestamp),
                user_id=log.user_id,
                action_type=log.action_type,
                item_id=log.item_id,
                container_id=log.container_id,
                details=log.details or {}
            )
            for log in rows
        ]
        return LogResponse(
            logs=logs,
            pagination=Pagination(total=total, page=page, limit=limit, pages=math.ceil(total / limit))
        )
