"""JSON encoding of CLI results"""
import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

class DateTimeEncoder(json.JSONEncoder):
    """Encodes datetimes, enums, dataclasses and pydantic models"""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.name.lower() if isinstance(obj.value, int) else obj.value
        if isinstance(obj, BaseModel):
            return obj.model_dump()
        if is_dataclass(obj) and not isinstance(obj, type):
            return asdict(obj)
        return super().default(obj)
