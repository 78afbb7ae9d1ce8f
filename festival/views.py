"""REST and CSV views over the current festival snapshot."""

from __future__ import annotations

import csv
import logging

from django.http import Http404, HttpRequest, HttpResponse, HttpResponseBadRequest
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .filters import Consumer, active_facet_count, filter_entities, item_options
from .reports import REPORT_BUILDERS
from .serializers import (
    CONSUMER_SERIALIZERS,
    CategoryTopperSerializer,
    FilterQuerySerializer,
    ItemSerializer,
    ItemWinnersSerializer,
    MeritEntrySerializer,
    TeamStandingSerializer,
)
from .sources import load_snapshot

logger = logging.getLogger(__name__)

UNAVAILABLE_DETAIL = "Festival data has not been loaded yet."


class SnapshotAPIView(APIView):
    """Base view that resolves the snapshot before dispatching to ``build``."""

    def get(self, request, *args, **kwargs):
        snapshot = load_snapshot()
        if snapshot is None:
            return Response({"detail": UNAVAILABLE_DETAIL}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(self.build(request, snapshot, *args, **kwargs))

    def build(self, request, snapshot, *args, **kwargs):  # pragma: no cover - abstract
        raise NotImplementedError


class LeaderboardView(SnapshotAPIView):
    def build(self, request, snapshot):
        standings = services.leaderboard(snapshot)
        return {
            "heading": snapshot.settings.heading,
            "standings": TeamStandingSerializer(standings, many=True).data,
        }


class MeritListView(SnapshotAPIView):
    def build(self, request, snapshot):
        return {"entries": MeritEntrySerializer(services.merit_list(snapshot), many=True).data}


class ItemWinnersView(SnapshotAPIView):
    def build(self, request, snapshot):
        return {"items": ItemWinnersSerializer(services.item_wise_winners(snapshot), many=True).data}


class CategoryToppersView(SnapshotAPIView):
    def build(self, request, snapshot):
        return {"toppers": CategoryTopperSerializer(services.category_toppers(snapshot), many=True).data}


class DashboardStatsView(SnapshotAPIView):
    def build(self, request, snapshot):
        latest = services.latest_declared_result(snapshot)
        return {
            "stats": services.dashboard_stats(snapshot),
            "latest_result_id": latest.id if latest else None,
        }


def _consumer_entities(consumer: Consumer, snapshot):
    if consumer == Consumer.PARTICIPANTS:
        return snapshot.participants
    if consumer == Consumer.ITEMS:
        return snapshot.items
    if consumer == Consumer.SCHEDULE:
        return snapshot.schedule
    if consumer == Consumer.RESULTS:
        return snapshot.results
    raise ValueError(f"Unknown filter consumer: {consumer!r}")  # pragma: no cover


class FilteredEntitiesView(APIView):
    """Apply the facet query parameters to one consumer's collection."""

    def get(self, request, consumer: str):
        if consumer not in Consumer.values:
            raise Http404(f"Unknown consumer: {consumer}")
        kind = Consumer(consumer)

        serializer = FilterQuerySerializer(data=request.query_params, query=request.query_params)
        serializer.is_valid(raise_exception=True)
        state = serializer.validated_data["state"]

        snapshot = load_snapshot()
        if snapshot is None:
            return Response({"detail": UNAVAILABLE_DETAIL}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        entities = filter_entities(kind, _consumer_entities(kind, snapshot), snapshot, state)
        logger.debug("Filtered %s to %d entities (version %s)", kind.value, len(entities), state.version)
        return Response(
            {
                "consumer": kind.value,
                "version": state.version,
                "active_facets": active_facet_count(kind, state),
                "selections": state.selections.as_query(),
                "count": len(entities),
                "results": CONSUMER_SERIALIZERS[kind.value](entities, many=True).data,
                "item_options": ItemSerializer(item_options(snapshot, state), many=True).data,
                "date_options": list(snapshot.settings.event_days),
                "stage_options": list(snapshot.settings.stages),
            }
        )


def export_report_csv(request: HttpRequest, kind: str) -> HttpResponse:
    """Download one of the tabular reports as CSV, honouring facet parameters."""

    builder = REPORT_BUILDERS.get(kind)
    if builder is None:
        raise Http404(f"Unknown report: {kind}")

    serializer = FilterQuerySerializer(data=request.GET, query=request.GET)
    if not serializer.is_valid():
        return HttpResponseBadRequest("Invalid filter parameters.")

    snapshot = load_snapshot()
    if snapshot is None:
        return HttpResponse(UNAVAILABLE_DETAIL, status=503, content_type="text/plain")

    report = builder(snapshot, serializer.validated_data["state"])
    response = HttpResponse(content_type="text/csv")
    response["Content-Disposition"] = f'attachment; filename="{kind}.csv"'
    writer = csv.writer(response)
    writer.writerow(report.header)
    writer.writerows(report.rows)
    return response
