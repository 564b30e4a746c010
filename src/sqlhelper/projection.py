"""Project objects into ordered column/value pairs."""
import dataclasses
from collections.abc import Mapping
from typing import Any

from sqlhelper.exceptions import ValidationError
from sqlhelper.schema import describe_columns, member_value

__all__ = ['project', 'public_members']


def public_members(obj: Any) -> list[str]:
    """Public member names of an object in declaration order.

    Mappings contribute their string keys, dataclasses and namedtuples their
    fields, annotated classes their annotations, anything else its instance
    attributes. Names starting with an underscore are never public.
    """
    if isinstance(obj, Mapping):
        names = [key for key in obj if isinstance(key, str)]
    elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        names = [f.name for f in dataclasses.fields(obj)]
    elif isinstance(obj, tuple) and hasattr(obj, '_fields'):
        names = list(obj._fields)
    else:
        names = [col.name for col in describe_columns(type(obj))]
        if not names:
            try:
                names = list(vars(obj))
            except TypeError as err:
                raise ValidationError(
                    f'Cannot enumerate members of {type(obj).__name__}') from err
    return [name for name in names if not name.startswith('_')]


def project(instance: Any, skip: str | None = None) -> list[tuple[str, Any]]:
    """Ordered (column, value) pairs for an object's public members.

    The member named `skip` is omitted; values are passed through unchanged.
    """
    if instance is None:
        raise ValidationError('Cannot project None')
    return [(name, member_value(instance, name))
            for name in public_members(instance)
            if name != skip]
