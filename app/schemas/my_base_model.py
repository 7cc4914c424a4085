import logging
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

_FALSE_STRINGS = {"", "0", "false", "no", "off", "none", "null"}


def _coerce(attr_type: type, value: Any) -> Any:
    if attr_type is bool and isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    if attr_type is str and isinstance(value, (dict, list)):
        raise ValueError("container value for str field")
    return attr_type(value)


class CustomBaseModel(BaseModel):
    """Custom base model for all schemas.
    - pre-process the data before init
    - set the default value if the value is invalid or missing (None)
    - nested dicts are left to pydantic
    """

    def __init__(self, **data: Any) -> None:
        for attr, value in list(data.items()):
            field = self.__class__.model_fields.get(attr)
            if field is None:
                continue
            attr_type = field.annotation

            # process simple type
            if attr_type in (int, float, str, bool):
                if value is None:
                    logger.debug("missing value for key %s, using default", attr)
                    data.pop(attr)
                    continue
                try:  # try to convert the value to the type of the attribute
                    data[attr] = _coerce(attr_type, value)
                except Exception:
                    logger.debug("invalid value for key %s, using default", attr)
                    data.pop(attr)
        super().__init__(**data)

    @classmethod
    def from_record(cls, record: Any):
        """Build from a dict or an ORM row (attributes named like the fields)."""
        if isinstance(record, dict):
            return cls(**record)
        return cls(**{name: getattr(record, name, None) for name in cls.model_fields})
