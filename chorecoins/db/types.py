from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

from ..utils.dt_utils import to_datetime


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on both sides of the database boundary.

    Values are normalized on the way in (any shape ``to_datetime`` accepts)
    and re-tagged as UTC on the way out, since SQLite drops the offset.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return to_datetime(value)

    def process_result_value(self, value, dialect):
        return to_datetime(value)
