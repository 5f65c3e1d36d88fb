import json
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from voicecanvas.db.models import CanvasRecord
from voicecanvas.observability.logging import get_logger

logger = get_logger(__name__)


class CanvasRepository:
    """Key-value store of canvas records, one per editing session key."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def save(self, session_key: str, elements: List[Dict[str, Any]], diagram_text: str) -> None:
        session: Session = self.session_factory()
        try:
            record = session.query(CanvasRecord).filter_by(session_key=session_key).one_or_none()
            if record is None:
                record = CanvasRecord(session_key=session_key)
                session.add(record)
            record.elements = json.dumps(elements)
            record.diagram_text = diagram_text or ""
            session.commit()
            logger.debug("Saved canvas record %s (%d elements)", session_key, len(elements))
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def load(self, session_key: str) -> Optional[Dict[str, Any]]:
        session: Session = self.session_factory()
        try:
            record = session.query(CanvasRecord).filter_by(session_key=session_key).one_or_none()
            return record.to_dict() if record else None
        finally:
            session.close()

    def load_elements(self, session_key: str) -> List[Dict[str, Any]]:
        record = self.load(session_key)
        if not record:
            return []
        return json.loads(record["elements"] or "[]")

    def sink_for(self, session_key: str):
        """A record sink bound to one session key, for CanvasStore."""
        def sink(elements: List[Dict[str, Any]], diagram_text: str) -> None:
            self.save(session_key, elements, diagram_text)

        return sink
