"""Serializers for festival REST endpoints."""

from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from .filters import Facet, FilterState, RoleContext
from .snapshot import ItemType, PerformanceType, ResultStatus, UserRole

_ENUM_FACETS = {
    Facet.PERFORMANCE_TYPE: PerformanceType,
    Facet.RESULT_STATUS: ResultStatus,
    Facet.ITEM_TYPE: ItemType,
}


class FilterQuerySerializer(serializers.Serializer):
    """Validate facet query parameters and turn them into a :class:`FilterState`."""

    role = serializers.ChoiceField(choices=UserRole.choices, default=UserRole.MANAGER)
    team_lock = serializers.CharField(required=False, allow_blank=True, default="")

    def __init__(self, *args, query=None, **kwargs):
        self.query = query
        super().__init__(*args, **kwargs)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        role = attrs["role"]
        team_lock = attrs.get("team_lock") or None
        if role == UserRole.TEAM_LEADER and not team_lock:
            raise serializers.ValidationError({"team_lock": "Team leaders must be pinned to a team."})

        errors = {}
        for facet, enum in _ENUM_FACETS.items():
            values = self.query.getlist(facet.value) if self.query is not None else []
            unknown = [
                part
                for value in values
                for part in value.split(",")
                if part.strip() and part.strip() not in enum.values
            ]
            if unknown:
                errors[facet.value] = f"Unknown value(s): {', '.join(unknown)}."
        if errors:
            raise serializers.ValidationError(errors)

        context = RoleContext(role=UserRole(role), team_id=team_lock)
        attrs["state"] = FilterState.from_query(self.query or {}, context)
        return attrs


class TeamSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()


class CategorySerializer(TeamSerializer):
    pass


class TeamStandingSerializer(serializers.Serializer):
    rank = serializers.IntegerField()
    team = TeamSerializer()
    points = serializers.IntegerField()
    prize_points = serializers.IntegerField()
    grade_points = serializers.IntegerField()
    wins = serializers.IntegerField()


class ParticipantSerializer(serializers.Serializer):
    id = serializers.CharField()
    chest_number = serializers.CharField()
    name = serializers.CharField()
    place = serializers.CharField()
    team_id = serializers.CharField()
    category_id = serializers.CharField()
    item_ids = serializers.SerializerMethodField()

    def get_item_ids(self, obj):
        return sorted(obj.item_ids)


class MeritEntrySerializer(serializers.Serializer):
    participant = ParticipantSerializer()
    team = TeamSerializer(allow_null=True)
    category = CategorySerializer(allow_null=True)
    points = serializers.IntegerField()
    wins = serializers.SerializerMethodField()

    def get_wins(self, obj):
        return {str(position): names for position, names in obj.wins.items()}


class ItemSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    code = serializers.CharField()
    category_id = serializers.CharField()
    type = serializers.CharField()
    performance_type = serializers.CharField()
    duration = serializers.IntegerField()


class ItemWinnersSerializer(serializers.Serializer):
    item = ItemSerializer()
    category = CategorySerializer(allow_null=True)
    total_points = serializers.IntegerField()
    winners = serializers.SerializerMethodField()

    def get_winners(self, obj):
        return {
            str(position): [
                {
                    "participant_id": record.participant.id,
                    "chest_number": record.participant.chest_number,
                    "name": record.display_name,
                    "team": record.team_name,
                    "grade": record.score.grade_name,
                    "points": record.total,
                }
                for record in records
            ]
            for position, records in obj.winners_by_position.items()
        }


class CategoryTopperSerializer(serializers.Serializer):
    category = CategorySerializer()
    participant = ParticipantSerializer()
    team = TeamSerializer(allow_null=True)
    points = serializers.IntegerField()


class ScheduledEventSerializer(serializers.Serializer):
    id = serializers.CharField()
    item_id = serializers.CharField()
    category_id = serializers.CharField()
    date = serializers.CharField()
    time = serializers.CharField()
    stage = serializers.CharField()


class WinnerSerializer(serializers.Serializer):
    participant_id = serializers.CharField()
    position = serializers.IntegerField(allow_null=True)
    grade_id = serializers.CharField(allow_null=True)
    mark = serializers.FloatField(allow_null=True)


class DeclaredResultSerializer(serializers.Serializer):
    id = serializers.CharField()
    item_id = serializers.CharField()
    category_id = serializers.CharField()
    status = serializers.CharField()
    winners = WinnerSerializer(many=True)


CONSUMER_SERIALIZERS = {
    "participants": ParticipantSerializer,
    "items": ItemSerializer,
    "schedule": ScheduledEventSerializer,
    "results": DeclaredResultSerializer,
}
