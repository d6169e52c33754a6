# src/ocean_tracking/api/carriers.py
"""
Per-carrier behaviour as data.

Every provider is served by the same adapter; what differs between them
(endpoints, headers, vocabulary, backoff, quota handling) lives in a
CarrierProfile below.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from tenacity import wait_exponential

from ocean_tracking.models import TrackingKind


def _freeze(*maps: Mapping[str, str], **extra: str) -> Mapping[str, str]:
    merged: dict[str, str] = {}
    for m in maps:
        merged.update(m)
    merged.update(extra)
    return MappingProxyType(merged)


# -------- Shared status vocabulary --------

BASE_STATUS = _freeze({
    "PLANNED": "Planned",
    "IN_TRANSIT": "In Transit",
    "DELIVERED": "Delivered",
    "DELAYED": "Delayed",
    "ON_HOLD": "On Hold",
    "CANCELLED": "Cancelled",
    "DEPARTED": "Departed",
    "ARRIVED": "Arrived",
})

EXTENDED_STATUS = _freeze(BASE_STATUS, {
    "BOOKING_CONFIRMED": "Booking Confirmed",
    "CONTAINER_LOADED": "Container Loaded",
    "VESSEL_DEPARTED": "Vessel Departed",
    "VESSEL_ARRIVED": "Vessel Arrived",
    "CONTAINER_DISCHARGED": "Container Discharged",
    "CUSTOMS_CLEARED": "Customs Cleared",
})

AGGREGATOR_STATUS = _freeze(BASE_STATUS, LOADING="Loading", DISCHARGING="Discharging")

# -------- Shared event vocabulary --------

# short UN/EDIFACT-like codes (MSC, COSCO, CMA CGM, ShipsGo)
CODE_EVENTS = _freeze({
    "GATE_OUT": "Departed",
    "GATE_IN": "Arrived",
    "LOAD": "Loaded",
    "DISC": "Discharged",
    "DEPA": "Vessel Departed",
    "ARRI": "Vessel Arrived",
    "CREL": "Customs Released",
    "DLVR": "Delivered",
    "PICK": "Picked Up",
    "RETU": "Returned",
})

WORD_EVENTS = _freeze({
    "GATE_OUT": "Departed",
    "GATE_IN": "Arrived",
    "LOADED": "Loaded",
    "DISCHARGED": "Discharged",
    "VESSEL_DEPARTURE": "Vessel Departed",
    "VESSEL_ARRIVAL": "Vessel Arrived",
    "CUSTOMS_RELEASE": "Customs Released",
    "DELIVERED": "Delivered",
    "PICKED_UP": "Picked Up",
    "RETURNED": "Returned",
})

TERMINAL_EVENTS = _freeze({
    "GATE_OUT": "Departed Terminal",
    "GATE_IN": "Arrived at Terminal",
    "LOADED_ON_VESSEL": "Loaded on Vessel",
    "DISCHARGED_FROM_VESSEL": "Discharged from Vessel",
    "VESSEL_DEPARTURE": "Vessel Departed",
    "VESSEL_ARRIVAL": "Vessel Arrived",
    "CUSTOMS_RELEASE": "Customs Released",
    "DELIVERED_TO_CONSIGNEE": "Delivered",
    "EMPTY_RETURN": "Empty Container Returned",
    "TRANSSHIPMENT": "Transshipment",
    "PORT_ARRIVAL": "Arrived at Port",
    "PORT_DEPARTURE": "Departed from Port",
})

# -------- Carrier-native vocabularies --------

FRENCH_STATUS = _freeze({
    "EN_COURS": "In Transit",
    "LIVRE": "Delivered",
    "RETARDE": "Delayed",
    "EN_ATTENTE": "On Hold",
    "ANNULE": "Cancelled",
    "PARTI": "Departed",
    "ARRIVE": "Arrived",
})

FRENCH_EVENTS = _freeze({
    "SORTIE_PORTAIL": "Departed",
    "ENTREE_PORTAIL": "Arrived",
    "CHARGEMENT": "Loaded",
    "DECHARGEMENT": "Discharged",
    "DEPART_NAVIRE": "Vessel Departed",
    "ARRIVEE_NAVIRE": "Vessel Arrived",
    "DEDOUANEMENT": "Customs Released",
    "LIVRAISON": "Delivered",
    "ENLEVEMENT": "Picked Up",
    "RETOUR": "Returned",
})

GERMAN_STATUS = _freeze({
    "GEPLANT": "Planned",
    "UNTERWEGS": "In Transit",
    "ZUGESTELLT": "Delivered",
    "VERSPAETET": "Delayed",
    "WARTEND": "On Hold",
    "STORNIERT": "Cancelled",
    "ABGEFAHREN": "Departed",
    "ANGEKOMMEN": "Arrived",
})

GERMAN_EVENTS = _freeze({
    "TOR_AUSGANG": "Departed",
    "TOR_EINGANG": "Arrived",
    "BELADEN": "Loaded",
    "ENTLADEN": "Discharged",
    "SCHIFF_ABFAHRT": "Vessel Departed",
    "SCHIFF_ANKUNFT": "Vessel Arrived",
    "ZOLL_FREIGABE": "Customs Released",
    "ZUSTELLUNG": "Delivered",
    "ABHOLUNG": "Picked Up",
})

CHINESE_STATUS = _freeze({
    "计划中": "Planned",
    "运输中": "In Transit",
    "已交付": "Delivered",
    "延误": "Delayed",
    "暂停": "On Hold",
    "取消": "Cancelled",
    "已出发": "Departed",
    "已到达": "Arrived",
})

CHINESE_EVENTS = _freeze({
    "出闸": "Departed",
    "进闸": "Arrived",
    "装船": "Loaded",
    "卸船": "Discharged",
    "船舶离港": "Vessel Departed",
    "船舶到港": "Vessel Arrived",
    "海关放行": "Customs Released",
    "交付": "Delivered",
    "提货": "Picked Up",
    "退回": "Returned",
})

# AIS navigational status, numeric (MarineTraffic) and worded (VesselFinder)
AIS_STATUS = _freeze({
    "0": "Under way using engine",
    "1": "At anchor",
    "2": "Not under command",
    "3": "Restricted manoeuvrability",
    "4": "Constrained by her draught",
    "5": "Moored",
    "6": "Aground",
    "7": "Engaged in fishing",
    "8": "Under way sailing",
    "UNDERWAY": "Under way using engine",
    "ANCHORED": "At anchor",
    "MOORED": "Moored",
    "NOT_UNDER_COMMAND": "Not under command",
    "AGROUND": "Aground",
})

# -------- Endpoints --------

CARRIER_ENDPOINTS = MappingProxyType({
    TrackingKind.CONTAINER: "/containers",
    TrackingKind.BOOKING: "/bookings",
    TrackingKind.BOL: "/bills-of-lading",
})

AGGREGATOR_ENDPOINTS = MappingProxyType({
    TrackingKind.CONTAINER: "/container",
    TrackingKind.BOOKING: "/booking",
})


@dataclass(frozen=True)
class CarrierProfile:
    name: str
    display_name: str
    status_map: Mapping[str, str] = field(default_factory=lambda: BASE_STATUS)
    event_map: Mapping[str, str] = field(default_factory=lambda: WORD_EVENTS)
    endpoints: Mapping[TrackingKind, str] = field(default_factory=lambda: CARRIER_ENDPOINTS)
    # field holding the event vocabulary code in each event object
    event_code_fields: tuple[str, ...] = ("eventType",)
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    backoff_base: float = 1.0
    backoff_cap: float = 5.0
    default_retry_after: float = 60.0
    # HTTP status -> retry-after seconds, for statuses that mean "quota exhausted"
    quota_statuses: Mapping[int, float] = field(default_factory=dict)

    def endpoint_for(self, kind: Optional[TrackingKind]) -> str:
        """Endpoint for `kind`; container endpoint when absent or unsupported."""
        if kind is not None and kind in self.endpoints:
            return self.endpoints[kind]
        return self.endpoints[TrackingKind.CONTAINER]

    def backoff(self) -> wait_exponential:
        """Wait between attempts: base, 2*base, 4*base ... capped."""
        return wait_exponential(multiplier=self.backoff_base, max=self.backoff_cap)

    def map_status(self, raw: Optional[str]) -> str:
        s = "" if raw is None else str(raw).strip()
        if not s:
            return "Unknown"
        return self.status_map.get(s.upper()) or self.status_map.get(s) or s

    def map_event(self, raw: Optional[str]) -> str:
        s = "" if raw is None else str(raw).strip()
        if not s:
            return "Unknown"
        return self.event_map.get(s.upper()) or self.event_map.get(s) or s.replace("_", " ")


_FREEMIUM_QUOTA = MappingProxyType({402: 3600.0})

PROFILES: Mapping[str, CarrierProfile] = MappingProxyType({p.name: p for p in (
    CarrierProfile(
        "maersk", "Maersk",
        status_map=_freeze(BASE_STATUS, IN_PROGRESS="In Transit", COMPLETED="Delivered"),
        event_map=WORD_EVENTS,
    ),
    CarrierProfile(
        "msc", "MSC",
        event_map=CODE_EVENTS,
        event_code_fields=("eventCode",),
        extra_headers={"X-API-Version": "2.0"},
    ),
    CarrierProfile(
        "cma-cgm", "CMA CGM",
        status_map=_freeze(BASE_STATUS, FRENCH_STATUS),
        event_map=_freeze(CODE_EVENTS, FRENCH_EVENTS),
        endpoints=MappingProxyType({k: v for k, v in CARRIER_ENDPOINTS.items() if k is not TrackingKind.BOL}),
        event_code_fields=("eventCode",),
        extra_headers={"X-API-Version": "1.0", "Accept-Language": "en-US,fr-FR"},
    ),
    CarrierProfile(
        "cosco", "COSCO",
        status_map=_freeze(BASE_STATUS, CHINESE_STATUS),
        event_map=_freeze(CODE_EVENTS, CHINESE_EVENTS),
        event_code_fields=("eventCode",),
        extra_headers={"X-API-Version": "2.0", "Accept-Language": "en-US,zh-CN"},
    ),
    CarrierProfile(
        "hapag-lloyd", "Hapag-Lloyd",
        status_map=_freeze(BASE_STATUS, GERMAN_STATUS),
        event_map=_freeze(CODE_EVENTS, GERMAN_EVENTS),
        event_code_fields=("eventCode",),
        extra_headers={"X-API-Version": "2.0", "Accept-Language": "en-US,de-DE"},
    ),
    CarrierProfile(
        "evergreen", "Evergreen",
        status_map=EXTENDED_STATUS,
        event_map=TERMINAL_EVENTS,
        extra_headers={"X-API-Region": "asia-pacific"},
    ),
    CarrierProfile(
        "one-line", "Ocean Network Express",
        status_map=_freeze(EXTENDED_STATUS, TRANSSHIPMENT="In Transshipment",
                           OUT_FOR_DELIVERY="Out for Delivery"),
        event_map=_freeze(TERMINAL_EVENTS, {
            "TRANSSHIPMENT_LOADED": "Transshipment Loaded",
            "TRANSSHIPMENT_DISCHARGED": "Transshipment Discharged",
            "RAIL_DEPARTURE": "Rail Departed",
            "RAIL_ARRIVAL": "Rail Arrived",
            "TRUCK_DEPARTURE": "Truck Departed",
            "TRUCK_ARRIVAL": "Truck Arrived",
        }),
        extra_headers={"X-API-Alliance": "ocean-network-express", "X-API-Coverage": "global"},
    ),
    CarrierProfile(
        "yang-ming", "Yang Ming",
        status_map=EXTENDED_STATUS,
        event_map=TERMINAL_EVENTS,
    ),
    CarrierProfile(
        "zim", "ZIM",
        status_map=_freeze(EXTENDED_STATUS, MEDITERRANEAN_TRANSIT="Mediterranean Transit",
                           FEEDER_SERVICE="Feeder Service"),
        event_map=_freeze(TERMINAL_EVENTS, {
            "MEDITERRANEAN_HUB": "Mediterranean Hub Transit",
            "FEEDER_CONNECTION": "Feeder Service Connection",
            "HAIFA_TERMINAL": "Haifa Terminal Processing",
            "ASHDOD_TERMINAL": "Ashdod Terminal Processing",
        }),
        extra_headers={
            "X-API-Version": "v1",
            "X-Client-Region": "mediterranean",
            "X-Route-Specialization": "mediterranean-global",
        },
        backoff_cap=3.0,
    ),
    CarrierProfile(
        "shipsgo", "ShipsGo",
        status_map=AGGREGATOR_STATUS,
        event_map=_freeze(CODE_EVENTS, TMPS="Transshipment", STUF="Stuffed", STRP="Stripped"),
        endpoints=AGGREGATOR_ENDPOINTS,
        event_code_fields=("eventCode",),
        extra_headers={"X-API-Version": "2.0"},
        backoff_base=0.5,
        backoff_cap=2.0,
        quota_statuses=_FREEMIUM_QUOTA,
    ),
    CarrierProfile(
        "searates", "SeaRates",
        status_map=AGGREGATOR_STATUS,
        event_map=_freeze(WORD_EVENTS, TRANSSHIPMENT="Transshipment"),
        endpoints=AGGREGATOR_ENDPOINTS,
        extra_headers={"X-API-Version": "1.0"},
        backoff_base=0.5,
        backoff_cap=2.0,
        quota_statuses=_FREEMIUM_QUOTA,
    ),
    CarrierProfile(
        "project44", "project44",
        status_map=_freeze(EXTENDED_STATUS, {
            "GATE_OUT": "Gate Out",
            "GATE_IN": "Gate In",
            "VESSEL_LOADED": "Loaded on Vessel",
            "VESSEL_DISCHARGED": "Discharged from Vessel",
            "TRANSSHIPMENT": "Transshipment",
            "OUT_FOR_DELIVERY": "Out for Delivery",
            "EXCEPTION": "Exception",
            "UNKNOWN": "Unknown",
        }),
        event_map=_freeze({
            "CONTAINER_GATE_OUT": "Container Gate Out",
            "CONTAINER_GATE_IN": "Container Gate In",
            "CONTAINER_LOADED": "Container Loaded",
            "CONTAINER_DISCHARGED": "Container Discharged",
            "CONTAINER_DELIVERED": "Container Delivered",
            "CONTAINER_RETURNED": "Container Returned",
            "VESSEL_DEPARTURE": "Vessel Departed",
            "VESSEL_ARRIVAL": "Vessel Arrived",
            "VESSEL_LOADED": "Loaded on Vessel",
            "VESSEL_DISCHARGED": "Discharged from Vessel",
            "PORT_ARRIVAL": "Arrived at Port",
            "PORT_DEPARTURE": "Departed from Port",
            "TRANSSHIPMENT": "Transshipment",
            "CUSTOMS_CLEARED": "Customs Cleared",
            "CUSTOMS_HOLD": "Customs Hold",
            "OUT_FOR_DELIVERY": "Out for Delivery",
            "DELIVERED": "Delivered",
            "DELAYED": "Delayed",
            "EXCEPTION": "Exception",
            "ON_HOLD": "On Hold",
        }),
        event_code_fields=("eventType", "eventCode"),
        extra_headers={
            "X-API-Version": "v4",
            "X-Client-Type": "enterprise",
            "X-Request-Source": "shipping-tracker",
        },
    ),
    CarrierProfile(
        "marine-traffic", "MarineTraffic",
        status_map=_freeze(BASE_STATUS, AIS_STATUS),
        endpoints=AGGREGATOR_ENDPOINTS,
        backoff_base=0.5,
        backoff_cap=2.0,
    ),
    CarrierProfile(
        "vessel-finder", "VesselFinder",
        status_map=_freeze(BASE_STATUS, AIS_STATUS),
        endpoints=AGGREGATOR_ENDPOINTS,
        backoff_base=0.5,
        backoff_cap=2.0,
    ),
    CarrierProfile(
        "track-trace", "Track-Trace",
        status_map=_freeze(BASE_STATUS, UNKNOWN="Unknown"),
        event_map=WORD_EVENTS,
        endpoints=AGGREGATOR_ENDPOINTS,
        extra_headers={"X-API-Version": "1.0"},
        backoff_base=0.5,
        backoff_cap=2.0,
        default_retry_after=120.0,
        quota_statuses=_FREEMIUM_QUOTA,
    ),
)})


def profile_for(provider: str) -> CarrierProfile:
    """Profile for `provider`; unknown providers get a plain carrier profile."""
    return PROFILES.get(provider) or CarrierProfile(provider, provider)
