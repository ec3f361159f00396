# board_core/filters.py
import django_filters as df

from .models import Notification


class NotificationFilter(df.FilterSet):
    read = df.BooleanFilter(field_name="read")
    type = df.CharFilter(field_name="type")
    entity_kind = df.CharFilter(field_name="entity_kind")
    created_at = df.DateTimeFromToRangeFilter()

    class Meta:
        model = Notification
        fields = ["read", "type", "entity_kind", "entity_id", "created_at"]
