from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class CanvasRecord(Base):
    __tablename__ = "canvas_records"

    id = Column(Integer, primary_key=True)
    session_key = Column(String(128), nullable=False, unique=True, index=True)
    elements = Column(Text, nullable=False, default="[]")
    diagram_text = Column(Text, nullable=False, default="")
    last_modified = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "elements": self.elements,
            "diagramText": self.diagram_text,
            "lastModified": self.last_modified,
        }
