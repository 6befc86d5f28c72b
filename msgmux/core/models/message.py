import dataclasses
from typing import Any

from pydantic import BaseModel


Message = Any
"""
A message is any instance of a record type, for example:

    @dataclass
    class CancelOrder:
        order_id: str
        reason: str

Routing is keyed on the concrete class of the instance.
"""


def is_record_type(tp: Any) -> bool:
    """
    Return True when ``tp`` is a class describing a plain data record:
    a dataclass or a pydantic model.

    Primitives, collections (NamedTuples included), ``None`` and ordinary
    classes are not records.
    """
    if not isinstance(tp, type):
        return False

    if issubclass(tp, BaseModel):
        return tp is not BaseModel

    return dataclasses.is_dataclass(tp)


def type_name(tp: Any) -> str:
    if isinstance(tp, type):
        return tp.__name__
    return repr(tp)
