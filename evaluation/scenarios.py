"""Evaluation scenarios exercising wet weather, dress codes and trip locks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


@dataclass
class EvaluationScenario:
    name: str
    description: str
    kind: str
    catalog: List[Dict[str, object]]
    request: Dict[str, object]
    expectations: Dict[str, object]


def _item(item_id: int, item_type: str, materials: List[tuple], weather: List[str], **extra: object) -> Dict[str, object]:
    return {
        "id": item_id,
        "type": item_type,
        "materialComposition": [{"material": name, "percentage": share} for name, share in materials],
        "suitableWeather": weather,
        **extra,
    }


def rainy_cold_catalog() -> List[Dict[str, object]]:
    return [
        _item(
            101,
            "Shell Jacket",
            [("nylon", 100)],
            ["Cold", "Rainy"],
            features="Fully taped seams and a waterproof membrane",
            name="Storm Shell",
        ),
        _item(201, "Merino Sweater", [("merino wool", 100)], ["Cold"], style="Minimal"),
        _item(202, "Flannel Shirt", [("cotton flannel", 100)], ["Cold", "Cool"], style="Rugged"),
        _item(203, "Linen Shirt", [("linen", 100)], ["Hot"], style="Minimal"),
        _item(301, "Wool Trousers", [("wool", 80), ("polyamide", 20)], ["Cold"]),
        _item(302, "Jeans", [("cotton denim", 98), ("elastane", 2)], ["All Season"]),
        _item(
            401,
            "Hiking Boots",
            [("leather", 60), ("nylon", 40)],
            ["Cold", "Rainy"],
            features="Gore-Tex lining with a lug sole",
        ),
        _item(402, "Suede Sneakers", [("suede", 100)], ["All Season"], favorite=True),
    ]


def office_catalog() -> List[Dict[str, object]]:
    office = {
        "suitableOccasions": ["Business Formal"],
        "suitablePlaces": ["Office / Boardroom"],
        "formality": "Business Formal",
    }
    casual = {
        "suitableOccasions": ["Casual Social"],
        "suitablePlaces": ["City Streets"],
        "formality": "Casual",
    }
    return [
        _item(110, "Overcoat", [("wool", 90), ("cashmere", 10)], ["Cool", "Cold"], **office),
        _item(111, "Parka", [("polyester", 100)], ["Cool", "Cold"], **casual),
        _item(210, "Dress Shirt", [("cotton poplin", 100)], ["All Season"], **office),
        _item(211, "Graphic Tee", [("cotton", 100)], ["Warm", "Hot"], **casual),
        _item(310, "Trousers", [("worsted wool", 100)], ["Cool", "Mild"], **office),
        _item(311, "Cargo Shorts", [("cotton canvas", 100)], ["Hot"], **casual),
        _item(410, "Oxford Shoes", [("leather", 100)], ["All Season"], **office),
        _item(411, "Canvas Sneakers", [("canvas", 100)], ["All Season"], **casual),
    ]


def travel_catalog(include_outerwear: bool = True) -> List[Dict[str, object]]:
    office = ["Business Formal"]
    office_places = ["Office / Boardroom", "Transit Hub / Airport"]
    rows = [
        _item(220, "Oxford Shirt", [("cotton", 100)], ["Mild", "Cool"], suitableOccasions=office, suitablePlaces=office_places),
        _item(221, "Poplin Shirt", [("cotton poplin", 100)], ["Mild"], suitableOccasions=office, suitablePlaces=["Office / Boardroom"]),
        _item(
            222,
            "Merino Sweater",
            [("merino", 100)],
            ["Mild", "Cool"],
            suitableOccasions=["Business Formal", "Casual Social"],
            suitablePlaces=office_places,
        ),
        _item(320, "Wool Trousers", [("wool", 100)], ["Mild", "Cool"], suitableOccasions=office, suitablePlaces=office_places),
        _item(
            321,
            "Chinos",
            [("cotton twill", 97), ("elastane", 3)],
            ["All Season"],
            suitableOccasions=["Business Formal", "Casual Social"],
            suitablePlaces=office_places,
        ),
        _item(420, "Derby Shoes", [("leather", 100)], ["All Season"], suitableOccasions=office, suitablePlaces=office_places),
        _item(421, "Loafers", [("leather", 100)], ["All Season"], suitableOccasions=office, suitablePlaces=office_places),
    ]
    if include_outerwear:
        rows.insert(
            0,
            _item(
                120,
                "Trench Coat",
                [("cotton gabardine", 100)],
                ["Mild", "Cool"],
                suitableOccasions=["Business Formal", "Active Transit / Commuting"],
                suitablePlaces=office_places,
            ),
        )
        rows.insert(1, _item(121, "Puffer Jacket", [("nylon", 100), ("down", 0)], ["Cold"]))
    return rows


SCENARIOS: List[EvaluationScenario] = [
    EvaluationScenario(
        name="rainy_cold_single_outerwear",
        description="High wet-surface risk keeps the only rain-ready shell and technical footwear.",
        kind="look",
        catalog=rainy_cold_catalog(),
        request={
            "actor_key": "eval_user",
            "intent": {
                "weather": ["Cold", "Rainy"],
                "weatherProfile": {
                    "tempBand": "cold",
                    "precipitationLevel": "moderate",
                    "precipitationType": "rain",
                    "wetSurfaceRisk": "high",
                },
            },
        },
        expectations={
            "status": "ok",
            "item_count": 4,
            "required_item_ids": [101, 401],
            "forbidden_item_ids": [402, 203],
        },
    ),
    EvaluationScenario(
        name="office_dress_code",
        description="A business formal office day picks the refined piece in every category.",
        kind="look",
        catalog=office_catalog(),
        request={
            "actor_key": "eval_user",
            "intent": {
                "weather": ["Cool"],
                "occasion": ["Business Formal"],
                "place": ["Office / Boardroom"],
                "formality": "Business Formal",
                "weatherSummary": "Expected range 8-14°C. Humidity 50%. Wind 8 km/h.",
            },
        },
        expectations={
            "status": "ok",
            "item_count": 4,
            "required_item_ids": [110, 210, 310, 410],
        },
    ),
    EvaluationScenario(
        name="office_trip_shared_outerwear",
        description="A four day office trip reuses one coat and keeps stay-day footwear fixed.",
        kind="trip",
        catalog=travel_catalog(),
        request={
            "actor_key": "eval_user",
            "destination": "Lisbon",
            "reason": "Office",
            "start_date": "2026-03-02",
            "end_date": "2026-03-05",
            "intent": {
                "weather": ["Mild"],
                "occasion": ["Business Formal"],
                "place": ["Office / Boardroom"],
            },
        },
        expectations={
            "status": "ok",
            "min_days": 4,
            "shared_outerwear": 120,
            "stay_footwear_fixed": True,
        },
    ),
    EvaluationScenario(
        name="trip_without_outerwear",
        description="No outerwear can be locked for the whole trip, so nothing is planned.",
        kind="trip",
        catalog=travel_catalog(include_outerwear=False),
        request={
            "actor_key": "eval_user",
            "destination": "Lisbon",
            "reason": "Office",
            "start_date": "2026-03-02",
            "end_date": "2026-03-04",
            "intent": {"weather": ["Mild"], "occasion": ["Business Formal"]},
        },
        expectations={"status": "error", "failure_kind": "lock_conflict"},
    ),
]


__all__ = ["EvaluationScenario", "SCENARIOS", "rainy_cold_catalog", "office_catalog", "travel_catalog"]
