"""
Dataset records and the built-in demo datasets.

A dataset is an ordered list of node records and edge records. Node
records carry a semantic kind and a free-form property bag; values that
have provenance (the display name, for instance) are stored as
"multi-values":

    {"values": [{"system": "APP", "insertionAt": "2025-08-27T00:00:00.000Z", "value": "Alice"}]}

Unknown property keys are kept untouched and ignored by the view model.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


NODE_KINDS = ('EVENT', 'PERSON', 'VEHICLE', 'ADDRESS')
OTHER_KIND = 'OTHER'

CREATED_AT = '2025-08-27T00:00:00.000Z'

RELATION_LABELS = {
    'residential_address': 'residential address',
    'vehicle': 'vehicle',
    'crossing_the_border': 'crossing the border',
    'submitting_visa_application': 'submitting visa application',
}


@dataclass
class DatasetNode:
    id: str
    kind: str
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DatasetEdge:
    id: str
    start_id: str
    end_id: str
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Dataset:
    name: str
    nodes: List[DatasetNode] = field(default_factory=list)
    relations: List[DatasetEdge] = field(default_factory=list)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def multi_value(value: Any, system: str = 'GEN', insertion_at: Optional[str] = None) -> Dict[str, Any]:
    """Wrap a value in a single-entry multi-value with provenance metadata."""
    return {'values': [{'system': system, 'insertionAt': insertion_at or _now_iso(), 'value': value}]}


def first_value(raw: Any) -> Any:
    """First value of a multi-value, or None when raw is not one."""
    if not isinstance(raw, dict):
        return None
    values = raw.get('values')
    if not values or not isinstance(values, list) or not isinstance(values[0], dict):
        return None
    return values[0].get('value')


def display_name(node: DatasetNode) -> str:
    """displayName multi-value, then the NODE_ID property, then the record id."""
    value = first_value(node.properties.get('displayName'))
    if value is not None and str(value):
        return str(value)
    fallback = node.properties.get('NODE_ID')
    return str(fallback) if fallback else node.id


def image_ref(node: DatasetNode) -> Optional[str]:
    image = node.properties.get('image')
    return image if isinstance(image, str) and image else None


def edge_label(edge: DatasetEdge) -> str:
    label = edge.properties.get('label')
    if isinstance(label, str):
        return label
    return str(edge.properties.get('RELATION_ID', ''))


def node_from_dict(data: Dict[str, Any]) -> DatasetNode:
    """
    Build a node record from a plain dict.

    Accepts either 'kind' or the legacy 'label' key for the category;
    extra keys are ignored.
    """
    kind = data.get('kind') or data.get('label') or OTHER_KIND
    if kind == 'GROUP':
        kind = 'PERSON'
    return DatasetNode(
        id=str(data['id']),
        kind=str(kind),
        properties=dict(data.get('properties') or {}),
    )


def edge_from_dict(data: Dict[str, Any]) -> DatasetEdge:
    start = data.get('start_id', data.get('startNodeID'))
    end = data.get('end_id', data.get('endNodeID'))
    if start is None or end is None:
        raise ValueError(f"Edge record {data.get('id')!r} is missing an endpoint")
    return DatasetEdge(
        id=str(data['id']),
        start_id=str(start),
        end_id=str(end),
        properties=dict(data.get('properties') or {}),
    )


def dataset_from_dict(data: Dict[str, Any]) -> Dataset:
    return Dataset(
        name=str(data.get('name', 'Dataset')),
        nodes=[node_from_dict(n) for n in data.get('nodes', [])],
        relations=[edge_from_dict(e) for e in data.get('relations', data.get('edges', []))],
    )


# --- Demo data ---

FEMALE_NAMES = ['Agnes', 'Kate', 'Anna', 'Maria', 'Magda', 'Sophie', 'Julia', 'Maya']
MALE_NAMES = ['John', 'Peter', 'Chris', 'Andrew', 'Thomas', 'Paul', 'Michael', 'Martin']
CITIES = [
    ('Warsaw', 52.2297, 21.0122),
    ('Krakow', 50.0647, 19.945),
    ('Gdansk', 54.352, 18.6466),
    ('Wroclaw', 51.1079, 17.0385),
    ('Poznan', 52.4064, 16.9252),
    ('Lodz', 51.7592, 19.455),
    ('Szczecin', 53.4285, 14.5528),
    ('Lublin', 51.2465, 22.5684),
]
CAR_BRANDS = ['Audi', 'BMW', 'Mercedes', 'Skoda', 'Toyota', 'Volkswagen', 'Volvo', 'Ford']


def _relation(edges: List[DatasetEdge], seq: int, start: str, end: str, relation_id: str) -> None:
    edges.append(DatasetEdge(
        id=f"rel_syn_{seq}",
        start_id=start,
        end_id=end,
        properties={
            'createdAt': CREATED_AT,
            'is_deleted': False,
            'RELATION_ID': relation_id,
            'label': RELATION_LABELS[relation_id],
        },
    ))


def generate_synthetic_dataset(total_nodes: int = 50) -> Dataset:
    """
    Persons, addresses, vehicles and events wired together with the four
    standard relation kinds. Deterministic for a given total_nodes.
    """
    persons = max(10, total_nodes // 2)
    addresses = max(5, total_nodes // 5)
    vehicles = max(5, total_nodes // 5)
    events = max(2, total_nodes - persons - addresses - vehicles)

    nodes: List[DatasetNode] = []
    for i in range(persons):
        is_female = i % 2 == 0
        names = FEMALE_NAMES if is_female else MALE_NAMES
        node_id = f"p_{i + 1:03d}"
        nodes.append(DatasetNode(node_id, 'PERSON', {
            'is_deleted': False,
            'NODE_ID': node_id,
            'displayName': multi_value(names[i % len(names)], insertion_at=CREATED_AT),
            'gender': multi_value('female' if is_female else 'male', insertion_at=CREATED_AT),
        }))
    for i in range(addresses):
        city, lat, lon = CITIES[i % len(CITIES)]
        node_id = f"a_{i + 1:03d}"
        nodes.append(DatasetNode(node_id, 'ADDRESS', {
            'is_deleted': False,
            'NODE_ID': node_id,
            'displayName': multi_value(f"{city} (PL)", insertion_at=CREATED_AT),
            'lat': multi_value(str(lat), insertion_at=CREATED_AT),
            'lon': multi_value(str(lon), insertion_at=CREATED_AT),
        }))
    for i in range(vehicles):
        node_id = f"v_{i + 1:03d}"
        nodes.append(DatasetNode(node_id, 'VEHICLE', {
            'is_deleted': False,
            'NODE_ID': node_id,
            'displayName': multi_value(f"P{i + 1:03d}-XYZ", insertion_at=CREATED_AT),
            'brand': multi_value(CAR_BRANDS[i % len(CAR_BRANDS)], insertion_at=CREATED_AT),
        }))
    for i in range(events):
        node_id = f"e_{i + 1:03d}"
        nodes.append(DatasetNode(node_id, 'EVENT', {
            'is_deleted': False,
            'NODE_ID': node_id,
            'displayName': multi_value(f"Event {i + 1}", insertion_at=CREATED_AT),
            'date': multi_value(CREATED_AT, insertion_at=CREATED_AT),
        }))

    def ids_of(kind):
        return [n.id for n in nodes if n.kind == kind]

    person_ids, address_ids = ids_of('PERSON'), ids_of('ADDRESS')
    vehicle_ids, event_ids = ids_of('VEHICLE'), ids_of('EVENT')

    relations: List[DatasetEdge] = []
    seq = 1
    for i, person_id in enumerate(person_ids):
        _relation(relations, seq, person_id, address_ids[i % len(address_ids)], 'residential_address')
        seq += 1
        _relation(relations, seq, person_id, vehicle_ids[i % len(vehicle_ids)], 'vehicle')
        seq += 1
        _relation(relations, seq, person_id, event_ids[i % len(event_ids)], 'crossing_the_border')
        seq += 1
    for j, event_id in enumerate(event_ids):
        _relation(relations, seq, event_id, address_ids[j % len(address_ids)], 'submitting_visa_application')
        seq += 1

    return Dataset(name=f"Synthetic ({len(nodes)} nodes)", nodes=nodes, relations=relations)


def _person(node_id: str, name: str) -> DatasetNode:
    return DatasetNode(node_id, 'PERSON', {
        'is_deleted': False,
        'NODE_ID': node_id,
        'displayName': multi_value(name, system='APP', insertion_at=CREATED_AT),
    })


def _friendship(edge_id: str, start: str, end: str, label: str) -> DatasetEdge:
    return DatasetEdge(edge_id, start, end, {
        'createdAt': CREATED_AT,
        'is_deleted': False,
        'RELATION_ID': label,
        'label': label,
    })


SOCIAL_NETWORK = Dataset(
    name='Social Network',
    nodes=[
        _person('alice', 'Alice'),
        _person('bob', 'Bob'),
        _person('charlie', 'Charlie'),
        _person('diana', 'Diana'),
        _person('eve', 'Eve'),
        _person('frank', 'Frank'),
    ],
    relations=[
        _friendship('rel_sn_1', 'alice', 'bob', 'friends'),
        _friendship('rel_sn_2', 'bob', 'charlie', 'colleagues'),
        _friendship('rel_sn_3', 'charlie', 'diana', 'siblings'),
        _friendship('rel_sn_4', 'diana', 'alice', 'roommates'),
        _friendship('rel_sn_5', 'eve', 'alice', 'friends'),
        _friendship('rel_sn_6', 'frank', 'eve', 'neighbours'),
    ],
)


def default_datasets() -> List[Dataset]:
    return [generate_synthetic_dataset(50), SOCIAL_NETWORK]
