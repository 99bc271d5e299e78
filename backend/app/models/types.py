import enum

from sqlalchemy import Enum as SAEnum


class CaseInsensitiveEnum(SAEnum):
    """Enum column type storing lowercase values.

    Accepts enum members or strings in any case ("Google", "OUTLOOK"), so
    provider names taken from URLs and query strings can be bound directly.
    """

    def __init__(self, enum_cls: type[enum.Enum], **kwargs):
        self._enum_cls = enum_cls
        self._enum_kwargs = kwargs.copy()
        kwargs.setdefault("values_callable", lambda members: [m.value for m in members])
        super().__init__(enum_cls, **kwargs)

    def adapt(self, impltype, **kw):
        params = {**self._enum_kwargs, **kw}
        return CaseInsensitiveEnum(self._enum_cls, **params)

    def _normalize(self, value):
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        return str(value).lower()

    def bind_processor(self, dialect):
        parent = super().bind_processor(dialect)

        def process(value):
            value = self._normalize(value)
            if value is not None and parent:
                return parent(value)
            return value

        return process

    def result_processor(self, dialect, coltype):
        parent = super().result_processor(dialect, coltype)

        def process(value):
            if isinstance(value, str):
                value = value.lower()
            if parent:
                return parent(value)
            return value

        return process
