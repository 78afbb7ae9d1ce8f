"""Sample data-layer payloads shared by the festival and projector tests."""

from __future__ import annotations

import copy
import json
import os
import tempfile

FESTIVAL_PAYLOAD = {
    "settings": {
        "heading": "Arts Fest 2025",
        "eventDays": ["2025-01-10", "2025-01-11"],
        "stages": ["Stage 1", "Hall"],
    },
    "teams": [
        {"id": "t-z", "name": "Zeta"},
        {"id": "t-y", "name": "Yellow House"},
        {"id": "t-x", "name": "Xavier House"},
    ],
    "categories": [
        {"id": "c-jr", "name": "Junior"},
        {"id": "c-sr", "name": "Senior"},
    ],
    "gradePoints": {
        "single": [
            {"id": "g-a", "name": "A", "points": 5},
            {"id": "g-b", "name": "B", "points": 3},
        ],
        "group": [
            {"id": "g-ga", "name": "A", "points": 10},
        ],
    },
    "items": [
        {
            "id": "i-song",
            "name": "Song",
            "categoryId": "c-jr",
            "type": "Single",
            "performanceType": "On Stage",
            "points": {"first": 10, "second": 6, "third": 3},
            "gradePointsOverride": {"g-a": 8},
        },
        {
            "id": "i-essay",
            "name": "Essay",
            "categoryId": "c-sr",
            "type": "Single",
            "performanceType": "Off Stage",
            "points": {"first": 5, "second": 3, "third": 1},
        },
        {
            "id": "i-dance",
            "name": "Group Dance",
            "categoryId": "c-jr",
            "type": "Group",
            "performanceType": "On Stage",
            "points": {"first": 20, "second": 15, "third": 10},
        },
    ],
    "participants": [
        {"id": "p1", "chestNumber": "10", "name": "Anu", "teamId": "t-x", "categoryId": "c-jr", "itemIds": ["i-song", "i-dance"]},
        {"id": "p2", "chestNumber": "2", "name": "Ben", "teamId": "t-y", "categoryId": "c-jr", "itemIds": ["i-song"]},
        {"id": "p3", "chestNumber": "1", "name": "Cara", "teamId": "t-z", "categoryId": "c-sr", "itemIds": ["i-essay"]},
        {"id": "p4", "chestNumber": "21", "name": "Dev", "teamId": "t-y", "categoryId": "c-sr", "itemIds": ["i-essay", "i-song"]},
    ],
    "results": [
        {
            "id": "r-song",
            "itemId": "i-song",
            "categoryId": "c-jr",
            "status": "Declared",
            "winners": [
                {"participantId": "p4", "position": 3},
                {"participantId": "p1", "position": 1, "gradeId": "g-a", "mark": 91},
                {"participantId": "p2", "position": 2, "gradeId": "g-b", "mark": 80},
            ],
        },
        {
            "id": "r-essay",
            "itemId": "i-essay",
            "categoryId": "c-sr",
            "status": "Declared",
            "winners": [
                {"participantId": "p3", "position": 1},
                {"participantId": "p4", "position": 2, "gradeId": "g-b"},
            ],
        },
        {
            "id": "r-dance",
            "itemId": "i-dance",
            "categoryId": "c-jr",
            "status": "Uploaded",
            "winners": [{"participantId": "p1", "position": 1, "gradeId": "g-ga"}],
        },
        {
            "id": "r-orphan",
            "itemId": "i-gone",
            "categoryId": "c-jr",
            "status": "Declared",
            "winners": [{"participantId": "p2", "position": 1}],
        },
    ],
    "schedule": [
        {"id": "e1", "itemId": "i-song", "categoryId": "c-jr", "date": "2025-01-10", "time": "09:00", "stage": "Stage 1"},
        {"id": "e2", "itemId": "i-essay", "categoryId": "c-sr", "date": "2025-01-10", "time": "10:00", "stage": "Hall"},
        {"id": "e3", "itemId": "i-gone", "categoryId": "c-jr", "date": "2025-01-11", "time": "09:30", "stage": "Hall"},
        {"id": "e4", "itemId": "i-dance", "categoryId": "c-jr", "date": "2025-01-11", "time": "11:00", "stage": "Stage 1"},
    ],
}


def festival_payload(**overrides):
    """Return a deep copy of the sample payload with top-level keys replaced."""
    payload = copy.deepcopy(FESTIVAL_PAYLOAD)
    payload.update(overrides)
    return payload


def write_payload(payload, directory=None) -> str:
    """Write ``payload`` as JSON and return the file path."""
    directory = directory or tempfile.mkdtemp(prefix="festival-")
    path = os.path.join(directory, "festival.json")
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle)
    return path
